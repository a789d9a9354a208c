"""Order status machine.

pending -> paid -> processing -> shipped -> delivered is the happy path.
Cancelling is possible until the order ships, a payment failure can hit any
open order, and a refund needs a payment that went through.
"""

from typing import Dict, FrozenSet

from ..errors import AlreadyCancelled, InvalidTransition
from ..models.order import ORDER_STATUSES


# reaching one of these closes the order for the user's active-order count
TERMINAL_STATUSES: FrozenSet[str] = frozenset({"delivered", "cancelled", "refunded"})
CANCELLABLE_STATUSES: FrozenSet[str] = frozenset({"pending", "paid", "processing"})

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"paid", "cancelled", "payment_failed"}),
    "paid": frozenset({"processing", "cancelled", "payment_failed", "refunded"}),
    "processing": frozenset({"shipped", "cancelled", "payment_failed", "refunded"}),
    "shipped": frozenset({"delivered", "payment_failed", "refunded"}),
    "payment_failed": frozenset({"paid", "refunded"}),
    "delivered": frozenset(),
    "cancelled": frozenset(),
    "refunded": frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(current: str, target: str) -> None:
    if target not in ORDER_STATUSES:
        raise InvalidTransition(f"Unknown order status {target!r}")
    if current == "cancelled" and target == "cancelled":
        raise AlreadyCancelled("Order is already cancelled")
    if not can_transition(current, target):
        raise InvalidTransition(f"Cannot change order status from {current!r} to {target!r}")
