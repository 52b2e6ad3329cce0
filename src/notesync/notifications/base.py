"""Notification framework base types and protocols.

Provides the user-visible notification surface for terminal request
failures:
- NotificationEvent enum for event types
- Notifier protocol for notification backends (toast, console, ...)
- NotificationManager for coordinating multiple notifiers
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol, runtime_checkable

from notesync.core.errors import ErrorKind, RequestError
from notesync.core.logging import get_logger

_logger = get_logger("notifications")


class NotificationEvent(Enum):
    """Events that can trigger notifications."""

    REQUEST_FAILED = "request_failed"
    AUTH_REQUIRED = "auth_required"


@dataclass
class NotificationContext:
    """Everything a notifier needs to render one failure notice."""

    event: NotificationEvent
    user_message: str
    kind: ErrorKind
    retry_count: int = 0
    http_status: int | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_error(
        cls,
        error: RequestError,
        event: NotificationEvent = NotificationEvent.REQUEST_FAILED,
    ) -> NotificationContext:
        return cls(
            event=event,
            user_message=error.user_message,
            kind=error.kind,
            retry_count=error.retry_count,
            http_status=error.http_status,
        )

    def format_title(self) -> str:
        if self.event is NotificationEvent.AUTH_REQUIRED:
            return "Sign-in required"
        return "Request failed"

    def format_message(self) -> str:
        """Message body, annotated with the retry count when retries happened."""
        if self.retry_count > 0:
            noun = "retry" if self.retry_count == 1 else "retries"
            return f"{self.user_message} (failed after {self.retry_count} {noun})"
        return self.user_message


@runtime_checkable
class Notifier(Protocol):
    """Protocol for notification backends.

    Implementations deliver a notification through one channel. Failures
    should be logged and reported through the return value, not raised.
    """

    @property
    def subscribed_events(self) -> set[NotificationEvent]:
        ...

    async def send(self, context: NotificationContext) -> bool:
        ...

    async def close(self) -> None:
        ...


class NotificationManager:
    """Routes notification contexts to every subscribed notifier.

    Example usage:
        manager = NotificationManager([ConsoleNotifier()])
        await manager.notify(NotificationContext.from_error(error))
    """

    def __init__(self, notifiers: list[Notifier] | None = None) -> None:
        self._notifiers: list[Notifier] = notifiers or []

    def add_notifier(self, notifier: Notifier) -> None:
        self._notifiers.append(notifier)

    def remove_notifier(self, notifier: Notifier) -> None:
        """Remove a notifier.

        Raises:
            ValueError: If notifier is not registered.
        """
        self._notifiers.remove(notifier)

    @property
    def notifier_count(self) -> int:
        return len(self._notifiers)

    async def notify(self, context: NotificationContext) -> dict[str, bool]:
        """Send to all notifiers subscribed to the context's event.

        A failing notifier never prevents delivery to the others.

        Returns:
            Notifier class name mapped to delivery success.
        """
        results: dict[str, bool] = {}
        for notifier in self._notifiers:
            if context.event not in notifier.subscribed_events:
                continue
            notifier_name = type(notifier).__name__
            try:
                results[notifier_name] = await notifier.send(context)
            except Exception:
                _logger.warning(
                    "notifier_failed",
                    notifier=notifier_name,
                    notification_event=context.event.value,
                    exc_info=True,
                )
                results[notifier_name] = False
        return results

    async def close(self) -> None:
        for notifier in self._notifiers:
            try:
                await notifier.close()
            except Exception:
                _logger.warning(
                    "notifier_close_failed",
                    notifier=type(notifier).__name__,
                    exc_info=True,
                )


__all__ = [
    "NotificationContext",
    "NotificationEvent",
    "NotificationManager",
    "Notifier",
]
