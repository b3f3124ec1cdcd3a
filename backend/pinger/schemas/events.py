"""Payloads pushed to live subscribers and notification channels."""
from typing import Optional
from pydantic import BaseModel, ConfigDict


class CheckResultEvent(BaseModel):
    """One completed probe, as sent to dashboard WebSocket clients."""
    model_config = ConfigDict(populate_by_name=True)

    targetId: int
    name: str
    type: str
    status: str
    latency: int
    code: int
    at: str


class TransitionEvent(BaseModel):
    """A target changed status between its two most recent results."""
    target_name: str
    target_type: str
    target_endpoint: str
    status: str  # new status: UP or DOWN
    message: Optional[str] = None
    latency: Optional[int] = None
    timestamp: str
