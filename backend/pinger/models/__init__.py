"""Database models."""
from .target import Target
from .check_result import CheckResult, MESSAGE_MAX_LENGTH
from .notification_channel import NotificationChannel

__all__ = ["Target", "CheckResult", "NotificationChannel", "MESSAGE_MAX_LENGTH"]
