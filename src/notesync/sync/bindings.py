"""Bind push events to cache invalidation.

Each known event type maps to a ``CacheRule``: which key prefixes to mark
stale, and optionally which key to overwrite with the event payload.
A ``connected`` event invalidates everything, since events missed while
disconnected are never replayed.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from notesync.cache import Cache, CacheKey
from notesync.core.logging import get_logger
from notesync.events.stream import EventStreamConnection
from notesync.events.types import CONNECTED_EVENT

_logger = get_logger("sync.bindings")

NOTES_KEY: CacheKey = ("notes",)
TODOS_KEY: CacheKey = ("todos",)
TASKS_KEY: CacheKey = ("tasks",)
TASK_STATS_KEY: CacheKey = ("tasks-stats",)
ALL_KEYS: CacheKey = ()


@dataclass(frozen=True)
class CacheRule:
    invalidate: tuple[CacheKey, ...] = ()
    set_key: CacheKey | None = None


def _rules_for(events: tuple[str, ...], rule: CacheRule) -> dict[str, CacheRule]:
    return {event: rule for event in events}


DEFAULT_RULES: dict[str, CacheRule] = {
    CONNECTED_EVENT: CacheRule(invalidate=(ALL_KEYS,)),
    **_rules_for(
        ("note.created", "note.updated", "note.deleted"),
        CacheRule(invalidate=(NOTES_KEY, TASK_STATS_KEY)),
    ),
    **_rules_for(
        ("todo.created", "todo.updated", "todo.deleted", "todo.completed"),
        CacheRule(invalidate=(TODOS_KEY,)),
    ),
    **_rules_for(
        ("task.created", "task.started", "task.failed", "task.cancelled"),
        CacheRule(invalidate=(TASKS_KEY, TASK_STATS_KEY)),
    ),
    # A finished task may have rewritten notes (classification, summaries)
    "task.completed": CacheRule(invalidate=(TASKS_KEY, TASK_STATS_KEY, NOTES_KEY)),
    "stats.updated": CacheRule(set_key=TASK_STATS_KEY),
}


class CacheSyncBinder:
    """Subscribes a cache to an event stream.

    Args:
        connection: Stream whose events drive invalidation.
        cache: Cache to invalidate.
        rules: Event type to rule. Defaults to DEFAULT_RULES.
    """

    def __init__(
        self,
        connection: EventStreamConnection,
        cache: Cache,
        rules: Mapping[str, CacheRule] | None = None,
    ) -> None:
        self.connection = connection
        self.cache = cache
        self.rules = dict(DEFAULT_RULES if rules is None else rules)
        self._unsubscribers: list[Callable[[], Any]] = []

    @property
    def is_bound(self) -> bool:
        return bool(self._unsubscribers)

    def bind(self) -> CacheSyncBinder:
        if self._unsubscribers:
            return self
        for event_type in self.rules:
            self._unsubscribers.append(
                self.connection.on(event_type, self._handler_for(event_type))
            )
        _logger.debug("cache_sync_bound", event_types=len(self.rules))
        return self

    def unbind(self) -> None:
        """Remove exactly the subscriptions this binder created."""
        unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            unsubscribe()

    def _handler_for(self, event_type: str) -> Callable[[Any], None]:
        def handle(payload: Any) -> None:
            self.apply(event_type, payload)

        return handle

    def apply(self, event_type: str, payload: Any) -> None:
        rule = self.rules.get(event_type)
        if rule is None:
            return
        if rule.set_key is not None:
            self.cache.set(rule.set_key, {"success": True, "data": payload})
        for key in rule.invalidate:
            self.cache.invalidate(key)
        _logger.debug(
            "cache_sync_applied",
            event_type=event_type,
            invalidated=len(rule.invalidate),
            replaced=rule.set_key is not None,
        )
