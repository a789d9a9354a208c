"""Payment endpoints. Status updates come from the payment provider callback, run with an admin token."""

from __future__ import annotations

from flask import Blueprint

from .common import components, current_user, is_admin, payload, require_admin, success


payments_bp = Blueprint("payments", __name__, url_prefix="/payments")


def _payments():
    return components()["payment_service"]


@payments_bp.post("")
def create_payment():
    user = current_user()
    data = payload()
    payment = _payments().create_payment(
        order_id=data.get("order") or data.get("order_id"),
        user_id=user["id"],
        method=data.get("paymentMethod") or data.get("method"),
        provider=data.get("provider"),
    )
    return success(payment, 201)


@payments_bp.get("/<payment_id>")
def get_payment(payment_id: str):
    user = current_user()
    return success(_payments().get_payment(payment_id, user_id=user["id"], is_admin=is_admin(user)))


@payments_bp.patch("/<payment_id>/status")
def update_payment_status(payment_id: str):
    require_admin()
    data = payload()
    payment = _payments().update_payment_status(
        payment_id,
        data.get("status"),
        transaction_id=data.get("transactionId") or data.get("transaction_id"),
        error=data.get("error"),
    )
    return success(payment)
