"""Notification channel schemas and typed channel configuration.

Channel configuration is stored as a JSON string so administrators can
paste it as-is. It is parsed into one of four typed configs, keyed by the
channel type, both when a channel is saved and again before every send.
"""
import json
from datetime import datetime
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class ChannelConfigError(ValueError):
    """Channel configuration failed to parse or lacks a required field."""

    def __init__(self, message: str, kind: Optional[str] = None, field: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.field = field


class EmailChannelConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: str = Field(..., min_length=1)


class SlackChannelConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    webhook_url: str = Field(..., alias="webhookUrl", min_length=1)


class PagerDutyChannelConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    routing_key: str = Field(..., alias="routingKey", min_length=1)


class WebhookChannelConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str = Field(..., min_length=1)
    method: str = "POST"
    headers: Dict[str, str] = Field(default_factory=dict)


ChannelConfig = Union[EmailChannelConfig, SlackChannelConfig, PagerDutyChannelConfig, WebhookChannelConfig]

# type -> (display name, required JSON key, config model)
_CHANNEL_KINDS = {
    "email": ("Email", "email", EmailChannelConfig),
    "slack": ("Slack", "webhookUrl", SlackChannelConfig),
    "pagerduty": ("PagerDuty", "routingKey", PagerDutyChannelConfig),
    "webhook": ("Webhook", "url", WebhookChannelConfig),
}


def parse_channel_config(kind: str, raw: str) -> ChannelConfig:
    """Parse a stored JSON config into the typed config for ``kind``."""
    entry = _CHANNEL_KINDS.get(kind)
    if entry is None:
        raise ChannelConfigError(f"Unknown channel type: {kind}", kind=kind)
    display, required, model = entry

    try:
        data = json.loads(raw) if isinstance(raw, str) else raw
    except (TypeError, ValueError):
        raise ChannelConfigError("Configuration must be valid JSON", kind=kind)
    if not isinstance(data, dict):
        raise ChannelConfigError("Configuration must be valid JSON", kind=kind)

    if not data.get(required):
        raise ChannelConfigError(
            f'{display} channel requires "{required}" field in config',
            kind=kind,
            field=required,
        )

    try:
        config = model.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise ChannelConfigError(
            f"Invalid {display} channel config: {field}: {first.get('msg')}",
            kind=kind,
            field=field or None,
        )

    if isinstance(config, WebhookChannelConfig):
        config.method = config.method.upper()
    return config


class ChannelCreate(BaseModel):
    """Schema for creating a notification channel."""
    name: str = Field(..., min_length=1, max_length=255)
    type: str = Field(..., pattern="^(email|slack|pagerduty|webhook)$")
    config: str = Field(..., min_length=1)
    enabled: bool = True


class ChannelUpdate(BaseModel):
    """Schema for updating a notification channel."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[str] = Field(None, pattern="^(email|slack|pagerduty|webhook)$")
    config: Optional[str] = Field(None, min_length=1)
    enabled: Optional[bool] = None


class ChannelResponse(BaseModel):
    """Schema for channel in API responses."""
    id: int
    name: str
    type: str
    config: str
    enabled: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ChannelTestResponse(BaseModel):
    """Result of sending a test notification through one channel."""
    delivered: bool
    detail: Optional[str] = None
