from sqlalchemy import Column, DateTime, Integer, String, func
from .base import Base


class User(Base):
    """Order statistics for a user; identity itself lives with the auth provider."""

    __tablename__ = "user_stats"

    id = Column(String(128), primary_key=True)
    orders_count = Column(Integer, nullable=False, default=0)
    active_orders = Column(Integer, nullable=False, default=0)
    cancelled_orders = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
