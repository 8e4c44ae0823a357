from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Integer, String

from app.core.database import Base


class Notification(Base):
    """History of push notifications delivered to a user (shown in the client inbox)."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    body = Column(String(1000), nullable=False)
    type = Column(String(50), nullable=False, default="info")
    data = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
