"""CheckResult model - append-only probe outcomes."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from ..database import Base

MESSAGE_MAX_LENGTH = 500


class CheckResult(Base):
    """Outcome of a single probe against a target."""

    __tablename__ = "results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    target_id = Column(Integer, ForeignKey("targets.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String, nullable=False)  # UP, DOWN
    latency_ms = Column(Integer, nullable=False, default=0)
    code = Column(Integer, nullable=False, default=0)  # HTTP status, TCP/ICMP 1/0
    message = Column(String(MESSAGE_MAX_LENGTH), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    target = relationship("Target", back_populates="results")
