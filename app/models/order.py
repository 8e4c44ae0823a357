from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from app.core.database import Base
from app.models.enums import OrderStatus


class Order(Base):
    """Read model of the orders table (owned by the ordering flow)."""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    customer_id = Column(Integer, nullable=False, index=True)
    status = Column(String(20), default=OrderStatus.pending.value, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
