"""Console notifier rendering failure notices with rich."""

from __future__ import annotations

from rich.console import Console

from notesync.core.logging import get_logger
from notesync.notifications.base import NotificationContext, NotificationEvent

_logger = get_logger("notifications.console")


class ConsoleNotifier:
    """Print one styled line per notification to the terminal.

    Example usage:
        notifier = ConsoleNotifier()
        await notifier.send(context)
    """

    def __init__(
        self,
        events: set[NotificationEvent] | None = None,
        console: Console | None = None,
    ) -> None:
        self._events = events if events is not None else set(NotificationEvent)
        self._console = console or Console(stderr=True)

    @property
    def subscribed_events(self) -> set[NotificationEvent]:
        return self._events

    async def send(self, context: NotificationContext) -> bool:
        style = "yellow" if context.event is NotificationEvent.AUTH_REQUIRED else "red"
        self._console.print(
            f"[bold {style}]{context.format_title()}:[/] {context.format_message()}",
            highlight=False,
        )
        _logger.debug("console_notification_sent", notification_event=context.event.value)
        return True

    async def close(self) -> None:
        return None
