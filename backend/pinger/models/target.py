"""Target model - endpoints being monitored."""
from datetime import datetime
from sqlalchemy import Boolean, Column, Integer, String, DateTime
from sqlalchemy.orm import relationship

from ..database import Base


class Target(Base):
    """A monitored endpoint - HTTP URL, TCP host:port, or ICMP hostname."""

    __tablename__ = "targets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)  # HTTP, TCP, ICMP
    endpoint = Column(String, nullable=False)
    frequency_sec = Column(Integer, nullable=False, default=60)
    timeout_ms = Column(Integer, nullable=False, default=5000)
    expected_code = Column(Integer, nullable=True)  # HTTP only, stored for display
    alert_email = Column(String, nullable=True)  # Legacy per-target alert address
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    results = relationship(
        "CheckResult",
        back_populates="target",
        cascade="all, delete-orphan",
    )
