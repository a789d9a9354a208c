from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import relationship
from .base import Base


class Cart(Base):
    __tablename__ = "cart"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(128), nullable=False, unique=True)
    coupon_id = Column(String(36), ForeignKey("coupon.id"), nullable=True)
    total = Column(Numeric(12, 2), nullable=False, default=0)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    total_after_discount = Column(Numeric(12, 2), nullable=False, default=0)
    is_deleted = Column(Boolean, nullable=False, default=False, index=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    items = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.position",
    )
    coupon = relationship("Coupon")

    __mapper_args__ = {"version_id_col": version}
