"""User-visible notifications for terminal request failures."""

from notesync.notifications.base import (
    NotificationContext,
    NotificationEvent,
    NotificationManager,
    Notifier,
)
from notesync.notifications.console import ConsoleNotifier

__all__ = [
    "ConsoleNotifier",
    "NotificationContext",
    "NotificationEvent",
    "NotificationManager",
    "Notifier",
]
