from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String

from app.core.database import Base
from app.models.enums import SubscriptionScope


class Subscription(Base):
    """
    Waitlist subscription. scope_id is the offer id (scope=offer) or vendor id
    (scope=business) and NULL for scope=area, which needs latitude/longitude.
    radius_km NULL means DEFAULT_SUBSCRIPTION_RADIUS_KM.
    """
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subscriber_id = Column(Integer, nullable=False, index=True)
    scope = Column(String(20), default=SubscriptionScope.offer.value, nullable=False)
    scope_id = Column(Integer, nullable=True, index=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    radius_km = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
