from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, JSON, Numeric, String, Text, func
from sqlalchemy.orm import relationship
from .base import Base


class Product(Base):
    __tablename__ = "product"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),)

    id = Column(String(36), primary_key=True)
    store_id = Column(String(36), ForeignKey("store.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    base_price = Column(Numeric(12, 2), nullable=False)
    discount_price = Column(Numeric(12, 2), nullable=True)
    discount_start = Column(DateTime, nullable=True)
    discount_end = Column(DateTime, nullable=True)
    category_id = Column(String(36), nullable=True, index=True)
    images = Column(JSON, nullable=True)
    # base stock, only consulted when no tracked variant option applies
    stock = Column(Integer, nullable=False, default=0)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    variants = relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductVariant.sort_order",
    )

    @property
    def active_variants(self):
        return [v for v in self.variants if not v.is_deleted]

    @property
    def has_variants(self) -> bool:
        return bool(self.active_variants)

    @property
    def primary_image(self):
        return (self.images or [None])[0]
