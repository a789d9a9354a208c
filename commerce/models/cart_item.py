from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import relationship
from .base import Base


class CartItem(Base):
    __tablename__ = "cart_item"

    id = Column(String(36), primary_key=True)
    cart_id = Column(String(36), ForeignKey("cart.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("product.id"), nullable=False, index=True)
    variant_name = Column(String(128), nullable=True)
    variant_value = Column(String(255), nullable=True)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    sku = Column(String(128), nullable=True)
    position = Column(Integer, nullable=False, default=0)
    added_at = Column(DateTime, nullable=False, server_default=func.now())

    cart = relationship("Cart", back_populates="items")

    @property
    def variant(self):
        if self.variant_name is None:
            return None
        return {"name": self.variant_name, "value": self.variant_value}
