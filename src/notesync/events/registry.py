"""Event name to ordered subscriber mapping.

Each connection owns its own registry, so independent connections never
share handlers.
"""

from __future__ import annotations

from typing import Any

from notesync.core.logging import get_logger
from notesync.events.types import EventHandler, Subscription

_logger = get_logger("events.registry")


class EventSubscriptionRegistry:
    """Ordered handler lists keyed by event type.

    Usage::

        registry = EventSubscriptionRegistry()
        sub = registry.subscribe("note.created", on_note)
        registry.dispatch("note.created", {"id": "n1"})
        registry.unsubscribe(sub.id)
    """

    def __init__(self) -> None:
        self._by_type: dict[str, list[Subscription]] = {}
        self._by_id: dict[str, Subscription] = {}

    def subscribe(self, event_type: str, handler: EventHandler) -> Subscription:
        """Append a handler for ``event_type``; it runs after earlier ones."""
        subscription = Subscription(event_type=event_type, handler=handler)
        self._by_type.setdefault(event_type, []).append(subscription)
        self._by_id[subscription.id] = subscription
        _logger.debug(
            "subscribed",
            event_type=event_type,
            subscription_id=subscription.id,
        )
        return subscription

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove exactly one registration.

        Returns:
            True if the subscription existed and was removed.
        """
        subscription = self._by_id.pop(subscription_id, None)
        if subscription is None:
            return False
        handlers = self._by_type.get(subscription.event_type, [])
        self._by_type[subscription.event_type] = [
            s for s in handlers if s.id != subscription_id
        ]
        if not self._by_type[subscription.event_type]:
            del self._by_type[subscription.event_type]
        _logger.debug(
            "unsubscribed",
            event_type=subscription.event_type,
            subscription_id=subscription_id,
        )
        return True

    def dispatch(self, event_type: str, payload: Any) -> int:
        """Invoke every handler for ``event_type`` in registration order.

        The handler list is copied before delivery: a handler registered
        while this event is being delivered does not see it, and one
        removed mid-delivery is skipped. A raising handler is logged and
        the rest still run.

        Returns:
            Number of handlers that were invoked.
        """
        snapshot = list(self._by_type.get(event_type, ()))
        delivered = 0
        for subscription in snapshot:
            if subscription.id not in self._by_id:
                continue
            delivered += 1
            try:
                subscription.handler(payload)
            except Exception:
                _logger.warning(
                    "handler_failed",
                    event_type=event_type,
                    subscription_id=subscription.id,
                    exc_info=True,
                )
        return delivered

    def clear(self) -> None:
        count = len(self._by_id)
        self._by_type.clear()
        self._by_id.clear()
        if count:
            _logger.debug("subscriptions_cleared", count=count)

    def subscriber_count(self, event_type: str | None = None) -> int:
        if event_type is None:
            return len(self._by_id)
        return len(self._by_type.get(event_type, ()))

    def event_types(self) -> list[str]:
        return list(self._by_type)

    def __contains__(self, subscription_id: object) -> bool:
        return subscription_id in self._by_id
