"""Pydantic schemas for API request/response models."""
from .result import CheckResultResponse
from .target import (
    TargetCreate,
    TargetUpdate,
    TargetResponse,
    TargetWithStatus,
    TargetTestResponse,
)
from .channel import (
    ChannelCreate,
    ChannelUpdate,
    ChannelResponse,
    ChannelTestResponse,
    ChannelConfig,
    ChannelConfigError,
    EmailChannelConfig,
    SlackChannelConfig,
    PagerDutyChannelConfig,
    WebhookChannelConfig,
    parse_channel_config,
)
from .events import CheckResultEvent, TransitionEvent
from .status import StatusOverview, TargetSummary

__all__ = [
    "CheckResultResponse",
    "TargetCreate",
    "TargetUpdate",
    "TargetResponse",
    "TargetWithStatus",
    "TargetTestResponse",
    "ChannelCreate",
    "ChannelUpdate",
    "ChannelResponse",
    "ChannelTestResponse",
    "ChannelConfig",
    "ChannelConfigError",
    "EmailChannelConfig",
    "SlackChannelConfig",
    "PagerDutyChannelConfig",
    "WebhookChannelConfig",
    "parse_channel_config",
    "CheckResultEvent",
    "TransitionEvent",
    "StatusOverview",
    "TargetSummary",
]
