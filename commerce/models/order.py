from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, Numeric, String, func
from sqlalchemy.orm import relationship
from .base import Base


ORDER_STATUSES = (
    "pending",
    "paid",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
    "payment_failed",
    "refunded",
)


class Order(Base):
    __tablename__ = "order"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)
    shipping_address = Column(JSON, nullable=False)
    coupon_id = Column(String(36), ForeignKey("coupon.id"), nullable=True)
    subtotal = Column(Numeric(12, 2), nullable=False)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    shipping_fee = Column(Numeric(12, 2), nullable=False, default=0)
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(32), nullable=False, default="pending", index=True)
    paid_at = Column(DateTime, nullable=True)
    shipped_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    store_deleted = Column(Boolean, nullable=False, default=False)
    store_deleted_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def store_ids(self):
        seen = []
        for item in self.items:
            if item.store_id not in seen:
                seen.append(item.store_id)
        return seen


class OrderItem(Base):
    __tablename__ = "order_item"

    id = Column(String(36), primary_key=True)
    order_id = Column(String(36), ForeignKey("order.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("product.id"), nullable=False)
    store_id = Column(String(36), ForeignKey("store.id"), nullable=False)
    name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    image = Column(String(512), nullable=True)
    variant_name = Column(String(128), nullable=True)
    variant_value = Column(String(255), nullable=True)
    sku = Column(String(128), nullable=True)
    # units this line still holds from stock; zero once released
    reserved_quantity = Column(Integer, nullable=False, default=0)
    position = Column(Integer, nullable=False, default=0)

    order = relationship("Order", back_populates="items")

    @property
    def variant(self):
        if self.variant_name is None:
            return None
        return {"name": self.variant_name, "value": self.variant_value}
