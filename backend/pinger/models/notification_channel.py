"""NotificationChannel model - destinations for UP/DOWN transition alerts."""
from datetime import datetime
from sqlalchemy import Boolean, Column, Integer, String, Text, DateTime

from ..database import Base


class NotificationChannel(Base):
    """A broadcast destination, independent of any single target."""

    __tablename__ = "notification_channels"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)  # email, slack, pagerduty, webhook
    config = Column(Text, nullable=False)  # JSON, validated per type
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
