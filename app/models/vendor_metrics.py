from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer

from app.core.database import Base


class VendorMetrics(Base):
    """Quality metrics and "top vendor" badge. Rewritten as a whole by the daily quality job."""
    __tablename__ = "vendor_metrics"

    vendor_id = Column(Integer, ForeignKey("vendors.id", ondelete="CASCADE"), primary_key=True)
    total_orders = Column(Integer, default=0, nullable=False)
    completed_orders = Column(Integer, default=0, nullable=False)
    repeat_customers = Column(Integer, default=0, nullable=False)
    unique_customers = Column(Integer, default=0, nullable=False)
    avg_rating = Column(Float, default=0.0, nullable=False)
    quality_score = Column(Float, default=0.0, nullable=False)
    is_top = Column(Boolean, default=False, nullable=False)
    computed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
