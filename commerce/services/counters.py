"""Derived aggregates kept next to the writes that change them.

Callers run these inside the same session transaction as the state change, so
a rollback takes the counter update with it.
"""

from typing import Dict, Iterable

from sqlalchemy import update

from ..models.store import Store
from ..models.user import User


USER_COUNTERS = ("orders_count", "active_orders", "cancelled_orders")


def ensure_user(session, user_id: str) -> User:
    user = session.get(User, user_id)
    if user is None:
        user = User(id=user_id, orders_count=0, active_orders=0, cancelled_orders=0)
        session.add(user)
        session.flush()
    return user


def adjust_user(session, user_id: str, **deltas: int) -> None:
    unknown = set(deltas) - set(USER_COUNTERS)
    if unknown:
        raise ValueError(f"unknown user counters: {sorted(unknown)}")
    ensure_user(session, user_id)
    values = {name: getattr(User, name) + delta for name, delta in deltas.items() if delta}
    if not values:
        return
    session.execute(
        update(User)
        .where(User.id == user_id)
        .values(**values)
        .execution_options(synchronize_session="fetch")
    )


def adjust_store_orders(session, store_ids: Iterable[str], delta: int) -> None:
    ids = list(dict.fromkeys(store_ids))
    if not ids or not delta:
        return
    session.execute(
        update(Store)
        .where(Store.id.in_(ids))
        .values(orders_count=Store.orders_count + delta)
        .execution_options(synchronize_session="fetch")
    )


def adjust_store_revenue(session, amounts: Dict[str, object], sign: int = 1) -> None:
    for store_id, amount in amounts.items():
        session.execute(
            update(Store)
            .where(Store.id == store_id)
            .values(total_revenue=Store.total_revenue + sign * amount)
            .execution_options(synchronize_session="fetch")
        )
