from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from sqlalchemy import or_, update

from ..errors import CouponError
from ..models.cart import Cart
from ..models.coupon import COUPON_TYPES, Coupon, CouponRedemption
from ..models.product import Product
from .pricing import money


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def find_by_code(session, code: Optional[str]) -> Coupon:
    normalized = normalize_code(code)
    coupon = session.query(Coupon).filter(Coupon.code == normalized).first() if normalized else None
    if coupon is None:
        raise CouponError("not_found", "Coupon not found")
    return coupon


def has_redeemed(session, coupon_id: str, user_id: str) -> bool:
    return (
        session.query(CouponRedemption.id)
        .filter(CouponRedemption.coupon_id == coupon_id, CouponRedemption.user_id == user_id)
        .first()
        is not None
    )


def _matches_scope(session, coupon: Coupon, cart: Cart) -> bool:
    product_ids = [it.product_id for it in cart.items]
    if coupon.product_ids and set(product_ids) & set(coupon.product_ids):
        return True
    if coupon.category_ids and product_ids:
        categories = {
            row.category_id
            for row in session.query(Product.category_id).filter(Product.id.in_(product_ids))
        }
        if categories & set(coupon.category_ids):
            return True
    return False


def validate(session, coupon: Optional[Coupon], cart: Cart, user_id: str, now: datetime) -> Coupon:
    """Run the redemption rules in order and stop at the first failure."""
    if coupon is None:
        raise CouponError("not_found", "Coupon not found")
    if not coupon.active:
        raise CouponError("inactive", "Coupon is not active")
    if coupon.expiry_date < now:
        raise CouponError("expired", "Coupon has expired")
    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        raise CouponError("exhausted", "Coupon usage limit reached")
    if money(cart.total) < money(coupon.min_cart_total):
        raise CouponError(
            "below_minimum",
            f"Minimum cart total to use this coupon is {money(coupon.min_cart_total)}",
        )
    if has_redeemed(session, coupon.id, user_id):
        raise CouponError("already_used", "You have already used this coupon")
    if coupon.is_scoped and not _matches_scope(session, coupon, cart):
        raise CouponError("not_applicable", "This coupon does not apply to any item in your cart")
    return coupon


def compute_discount(coupon: Coupon, cart_total) -> Decimal:
    if coupon.type not in COUPON_TYPES:
        raise ValueError(f"unknown coupon type: {coupon.type}")
    total = money(cart_total)
    if total <= 0:
        return money(0)
    if coupon.type == "fixed":
        return min(money(coupon.value), total)
    amount = money(total * Decimal(coupon.value) / Decimal(100))
    if coupon.max_discount is not None:
        amount = min(amount, money(coupon.max_discount))
    return min(amount, total)


def redeem(session, coupon: Coupon, user_id: str, order_id: Optional[str] = None) -> CouponRedemption:
    """Count one use of ``coupon`` by ``user_id`` without passing the usage limit."""
    result = session.execute(
        update(Coupon)
        .where(
            Coupon.id == coupon.id,
            or_(Coupon.usage_limit.is_(None), Coupon.used_count < Coupon.usage_limit),
        )
        .values(used_count=Coupon.used_count + 1)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount != 1:
        raise CouponError("exhausted", "Coupon usage limit reached")
    redemption = CouponRedemption(
        id=str(uuid4()),
        coupon_id=coupon.id,
        user_id=user_id,
        order_id=order_id,
    )
    session.add(redemption)
    return redemption
