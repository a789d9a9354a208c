from sqlalchemy import Column, DateTime, Integer, Numeric, String, func
from .base import Base


class Store(Base):
    __tablename__ = "store"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(128), nullable=False, index=True)
    name = Column(String(255), nullable=False, unique=True)
    orders_count = Column(Integer, nullable=False, default=0)
    total_revenue = Column(Numeric(14, 2), nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
