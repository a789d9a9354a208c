from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, Numeric, String, UniqueConstraint, func
from sqlalchemy.orm import validates
from .base import Base


COUPON_TYPES = ("fixed", "percentage")


class Coupon(Base):
    __tablename__ = "coupon"

    id = Column(String(36), primary_key=True)
    code = Column(String(64), nullable=False, unique=True, index=True)
    type = Column(String(16), nullable=False)
    value = Column(Numeric(12, 2), nullable=False)
    min_cart_total = Column(Numeric(12, 2), nullable=False, default=0)
    # cap on the discount of percentage coupons; NULL = uncapped
    max_discount = Column(Numeric(12, 2), nullable=True)
    expiry_date = Column(DateTime, nullable=False)
    # NULL = no global cap
    usage_limit = Column(Integer, nullable=True, default=1)
    used_count = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    product_ids = Column(JSON, nullable=True)
    category_ids = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    @validates("code")
    def _normalize_code(self, key, value):
        # lookups upper-case the input, so stored codes must match
        return (value or "").strip().upper()

    @property
    def is_scoped(self) -> bool:
        return bool(self.product_ids) or bool(self.category_ids)


class CouponRedemption(Base):
    __tablename__ = "coupon_redemption"
    __table_args__ = (UniqueConstraint("coupon_id", "user_id", name="uq_coupon_redemption_user"),)

    id = Column(String(36), primary_key=True)
    coupon_id = Column(String(36), ForeignKey("coupon.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    order_id = Column(String(36), ForeignKey("order.id"), nullable=True)
    redeemed_at = Column(DateTime, nullable=False, server_default=func.now())
