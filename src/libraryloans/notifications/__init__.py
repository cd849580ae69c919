"""Outbound reminder notifications."""

from .email import (
    HttpEmailSender,
    NotificationConfigError,
    NotificationError,
    ReminderSender,
)

__all__ = [
    "HttpEmailSender",
    "NotificationConfigError",
    "NotificationError",
    "ReminderSender",
]
