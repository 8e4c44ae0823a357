from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer

from app.core.database import Base


class PushEndpoint(Base):
    """
    Push target of a subscriber. subscription is opaque to this service: a browser
    PushSubscription ({endpoint, keys}) for Web Push or {"token": ...} for FCM.
    """
    __tablename__ = "push_endpoints"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subscriber_id = Column(Integer, unique=True, nullable=False, index=True)
    enabled = Column(Boolean, default=True, nullable=False)
    subscription = Column(JSON(none_as_null=True), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
