"""Check result schemas."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class CheckResultResponse(BaseModel):
    """Individual check result record."""
    id: int
    target_id: int
    status: str  # UP, DOWN
    latency_ms: int
    code: int
    message: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
