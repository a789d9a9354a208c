"""
Product variant models.

A variant is one axis of differentiation on a product (e.g. Color) and owns
its options (e.g. Red, Blue). Both carry stable ids so they are edited by id,
never by position.
"""
from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import relationship
from .base import Base


class ProductVariant(Base):
    __tablename__ = "product_variant"

    id = Column(String(36), primary_key=True)
    product_id = Column(String(36), ForeignKey("product.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(128), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    product = relationship("Product", back_populates="variants")
    options = relationship(
        "VariantOption",
        back_populates="variant",
        cascade="all, delete-orphan",
        order_by="VariantOption.sort_order",
    )

    def option_by_value(self, value: str):
        for option in self.options:
            if option.value == value:
                return option
        return None


class VariantOption(Base):
    __tablename__ = "variant_option"
    __table_args__ = (
        CheckConstraint("stock IS NULL OR stock >= 0", name="ck_option_stock_non_negative"),
    )

    id = Column(String(36), primary_key=True)
    variant_id = Column(String(36), ForeignKey("product_variant.id", ondelete="CASCADE"), nullable=False, index=True)
    value = Column(String(255), nullable=False)
    price_modifier = Column(Numeric(12, 2), nullable=False, default=0)
    # NULL means the option does not track stock (unlimited)
    stock = Column(Integer, nullable=True)
    sku = Column(String(128), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)

    variant = relationship("ProductVariant", back_populates="options")

    @property
    def tracks_stock(self) -> bool:
        return self.stock is not None
