"""Target schemas for API."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, model_validator

from ..utils.endpoints import validate_endpoint
from .result import CheckResultResponse


class TargetCreate(BaseModel):
    """Schema for creating a new target."""
    name: str = Field(..., min_length=1, max_length=255)
    type: str = Field(..., pattern="^(HTTP|TCP|ICMP)$")
    endpoint: str = Field(..., min_length=1)
    frequency_sec: int = Field(default=60, ge=10, le=86400)
    timeout_ms: int = Field(default=5000, ge=1000, le=60000)
    expected_code: Optional[int] = Field(None, ge=100, le=599)
    alert_email: Optional[str] = Field(None, max_length=255)
    enabled: bool = True

    @model_validator(mode="after")
    def check_endpoint(self):
        self.endpoint = validate_endpoint(self.type, self.endpoint)
        return self


class TargetUpdate(BaseModel):
    """Schema for updating a target. The endpoint is re-validated after merge."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[str] = Field(None, pattern="^(HTTP|TCP|ICMP)$")
    endpoint: Optional[str] = Field(None, min_length=1)
    frequency_sec: Optional[int] = Field(None, ge=10, le=86400)
    timeout_ms: Optional[int] = Field(None, ge=1000, le=60000)
    expected_code: Optional[int] = Field(None, ge=100, le=599)
    alert_email: Optional[str] = Field(None, max_length=255)
    enabled: Optional[bool] = None


class TargetResponse(BaseModel):
    """Schema for target in API responses."""
    id: int
    name: str
    type: str
    endpoint: str
    frequency_sec: int
    timeout_ms: int
    expected_code: Optional[int] = None
    alert_email: Optional[str] = None
    enabled: bool
    created_at: datetime

    class Config:
        from_attributes = True


class TargetWithStatus(TargetResponse):
    """Target with its most recent check result."""
    latest_result: Optional[CheckResultResponse] = None


class TargetTestResponse(BaseModel):
    """Response from running a target's probe on demand."""
    ok: bool
    status: str
    latency_ms: int
    code: int
    message: str
