from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from .base import Base


PAYMENT_METHODS = ("credit_card", "paypal", "cash_on_delivery")
PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded")


class Payment(Base):
    __tablename__ = "payment"

    id = Column(String(36), primary_key=True)
    # unique: at most one payment per order
    order_id = Column(String(36), ForeignKey("order.id"), nullable=False, unique=True)
    user_id = Column(String(128), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    method = Column(String(32), nullable=False, default="credit_card")
    provider = Column(String(64), nullable=True)
    status = Column(String(32), nullable=False, default="pending")
    transaction_id = Column(String(128), nullable=True, index=True)
    error_message = Column(Text, nullable=True)
    refunded_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}
