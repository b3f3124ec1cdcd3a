"""Services for probing, scheduling, storing and alerting."""
from .checker import CheckerService, ProbeResult
from .registry import TargetRegistry, ResultStore, ChannelRegistry
from .scheduler import SchedulerService, InFlightGuard
from .alerter import AlerterService
from .email_sender import EmailSenderService
from .websocket_manager import ConnectionManager

__all__ = [
    "CheckerService",
    "ProbeResult",
    "TargetRegistry",
    "ResultStore",
    "ChannelRegistry",
    "SchedulerService",
    "InFlightGuard",
    "AlerterService",
    "EmailSenderService",
    "ConnectionManager",
]
