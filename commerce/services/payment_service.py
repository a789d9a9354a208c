from typing import Dict, Optional
from uuid import uuid4
from sqlalchemy.exc import IntegrityError
from ..db.session import get_session
from ..errors import DuplicatePayment, Forbidden, InvalidInput, InvalidTransition, NotFound
from ..models.order import Order
from ..models.payment import PAYMENT_METHODS, PAYMENT_STATUSES, Payment
from ..utils.clock import utcnow
from ..utils.dto import to_payment_dto
from ..utils.validators import ensure_id
from . import counters
from .logging import log_event
from .order_service import store_subtotals, transition


# payment status -> order status it drives
ORDER_STATUS_FOR_PAYMENT = {
    "completed": "paid",
    "failed": "payment_failed",
    "refunded": "refunded",
}
PAYABLE_ORDER_STATUSES = frozenset({"pending", "payment_failed"})


def ensure_payment_transition(current: str, target: str) -> None:
    if current == target:
        raise InvalidTransition(f"Payment is already '{target}'")
    if current == "completed" and target == "pending":
        raise InvalidTransition("Cannot change payment from completed to pending")
    if current == "refunded":
        raise InvalidTransition("Payment has been refunded")
    if target == "refunded" and current != "completed":
        raise InvalidTransition("Only a completed payment can be refunded")


def _existing_payment(session, order_id: str) -> Optional[Payment]:
    return session.query(Payment).filter(Payment.order_id == order_id).first()


class PaymentService:
    """One payment per order; payment status changes drive the order status."""

    def __init__(self, session_factory=get_session, clock=utcnow):
        self._session_factory = session_factory
        self._clock = clock

    def create_payment(
        self,
        *,
        order_id: str,
        user_id: str,
        method: Optional[str] = None,
        provider: Optional[str] = None,
    ) -> Dict:
        order_id = ensure_id(order_id, "order_id")
        method = (method or "credit_card").strip().lower()
        if method not in PAYMENT_METHODS:
            raise InvalidInput(f"payment method must be one of {', '.join(PAYMENT_METHODS)}")
        with self._session_factory() as session:
            if _existing_payment(session, order_id) is not None:
                raise DuplicatePayment("Payment already exists for this order")
            order = session.get(Order, order_id)
            if order is None:
                raise NotFound("Order not found", code="order_not_found")
            if order.user_id != user_id:
                raise Forbidden("You are not allowed to pay for this order")
            if order.store_deleted:
                raise InvalidTransition("Order has been deleted")
            if order.status not in PAYABLE_ORDER_STATUSES:
                raise InvalidTransition(f"Cannot pay for an order that is {order.status}")
            payment = Payment(
                id=str(uuid4()),
                order_id=order.id,
                user_id=user_id,
                # always the order's own total, never a client figure
                amount=order.total_amount,
                currency=order.currency,
                method=method,
                provider=provider,
                status="pending",
            )
            session.add(payment)
            try:
                session.flush()
            except IntegrityError as exc:
                # another request paid for the same order first
                raise DuplicatePayment("Payment already exists for this order") from exc
            log_event("info", "payment.created", payment_id=payment.id, order_id=order.id, amount=payment.amount)
            return to_payment_dto(payment)

    def get_payment(self, payment_id: str, *, user_id: str, is_admin: bool = False) -> Dict:
        with self._session_factory() as session:
            payment = session.get(Payment, ensure_id(payment_id, "payment_id"))
            if payment is None:
                raise NotFound("Payment not found", code="payment_not_found")
            if not is_admin and payment.user_id != user_id:
                raise Forbidden("You are not allowed to view this payment")
            return to_payment_dto(payment)

    def update_payment_status(
        self,
        payment_id: str,
        status: str,
        *,
        transaction_id: Optional[str] = None,
        error: Optional[str] = None,
    ) -> Dict:
        """Apply a payment outcome and cascade it onto the order in the same transaction."""
        target = (status or "").strip().lower()
        if target not in PAYMENT_STATUSES:
            raise InvalidInput(f"status must be one of {', '.join(PAYMENT_STATUSES)}")
        with self._session_factory() as session:
            payment = session.get(Payment, ensure_id(payment_id, "payment_id"))
            if payment is None:
                raise NotFound("Payment not found", code="payment_not_found")
            ensure_payment_transition(payment.status, target)
            order = session.get(Order, payment.order_id)
            if order is None:
                raise NotFound("Order not found", code="order_not_found")

            now = self._clock()
            previous = payment.status
            payment.status = target
            if transaction_id:
                payment.transaction_id = transaction_id
            if error:
                payment.error_message = error

            order_target = ORDER_STATUS_FOR_PAYMENT.get(target)
            # cancelling already gave the revenue back; the refund only settles the payment
            settled_by_cancel = order.status == "cancelled" and target == "refunded"
            if order_target is not None and order.status != order_target and not settled_by_cancel:
                transition(session, order, order_target, now)
            if target == "completed":
                counters.adjust_store_revenue(session, store_subtotals(order), 1)
            elif previous == "completed" and not settled_by_cancel:
                counters.adjust_store_revenue(session, store_subtotals(order), -1)
            if target == "refunded":
                payment.refunded_at = now

            session.flush()
            log_event(
                "info",
                "payment.status_changed",
                payment_id=payment.id,
                order_id=order.id,
                previous=previous,
                status=target,
                order_status=order.status,
            )
            return to_payment_dto(payment)
