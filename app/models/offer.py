from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from app.core.database import Base


class Offer(Base):
    """
    Time-boxed offer. is_active is derived from publish_at / unpublish_at and is
    written only by the offer scheduler job, never by offer edits.
    """
    __tablename__ = "offers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    publish_at = Column(DateTime, nullable=False, index=True)
    unpublish_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
