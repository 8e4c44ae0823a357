"""Ledger of sent offer notifications for the anti-spam window."""
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from app.core.database import Base


class OfferNotificationLog(Base):
    """
    One row per (offer_id, subscriber_id, notification_type); sent_at is the last
    successful delivery and is overwritten when the notification is sent again.
    """
    __tablename__ = "offer_notification_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    offer_id = Column(Integer, ForeignKey("offers.id", ondelete="CASCADE"), nullable=False)
    subscriber_id = Column(Integer, nullable=False)
    notification_type = Column(String(50), nullable=False)  # offer_live
    sent_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("offer_id", "subscriber_id", "notification_type", name="uq_offer_subscriber_notification"),
    )
