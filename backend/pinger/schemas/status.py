"""Status overview schemas for dashboard."""
from typing import List, Optional
from pydantic import BaseModel


class TargetSummary(BaseModel):
    """Summary of a target for dashboard."""
    id: int
    name: str
    type: str
    enabled: bool
    status: str  # UP, DOWN, UNKNOWN
    latency_ms: Optional[int] = None
    last_check: Optional[str] = None


class StatusOverview(BaseModel):
    """Dashboard overview data."""
    total_targets: int
    targets_up: int
    targets_down: int
    targets_unknown: int
    live_connections: int
    targets: List[TargetSummary]
