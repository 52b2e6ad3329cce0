"""Query cache contract and the in-memory implementation.

Keys are hashable tuples such as ``("notes",)`` or
``("notes", (("page", 1),))``.
Invalidation matches by key prefix and marks entries stale rather than
dropping them, so readers keep the last known value until a refetch lands.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from notesync.core.logging import get_logger

_logger = get_logger("cache")

CacheKey = tuple[Any, ...]
Refetcher = Callable[[CacheKey], Awaitable[Any]]


def as_key(key: CacheKey | str) -> CacheKey:
    """Accept a bare string as a one-element key."""
    if isinstance(key, tuple):
        return key
    return (key,)


@runtime_checkable
class Cache(Protocol):
    """What the mutation coordinator and push bindings need from a cache.

    Any key-value store with these three operations will do.
    """

    def get(self, key: CacheKey) -> Any: ...

    def set(self, key: CacheKey, value: Any) -> None: ...

    def invalidate(self, key: CacheKey) -> Any: ...


@runtime_checkable
class DeletableCache(Cache, Protocol):
    """A cache that can also report and drop individual entries.

    Lets a rollback tell a missing entry from one holding None, and remove
    an entry the mutation created.
    """

    def delete(self, key: CacheKey) -> bool: ...

    def __contains__(self, key: object) -> bool: ...


@dataclass
class CacheEntry:
    value: Any
    updated_at: float = field(default_factory=time.monotonic)
    stale: bool = False


def _matches(key: CacheKey, prefix: CacheKey) -> bool:
    return key[: len(prefix)] == prefix


class QueryCache:
    """In-memory keyed store of query results.

    Refetchers registered for a key prefix reload stale entries on
    ``refresh_stale()``. Entries without a refetcher stay stale until
    something writes them.
    """

    def __init__(self) -> None:
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._refetchers: dict[CacheKey, Refetcher] = {}

    def get(self, key: CacheKey | str, default: Any = None) -> Any:
        entry = self._entries.get(as_key(key))
        return default if entry is None else entry.value

    def set(self, key: CacheKey | str, value: Any) -> None:
        self._entries[as_key(key)] = CacheEntry(value=value)

    def update(self, key: CacheKey | str, fn: Callable[[Any], Any]) -> Any:
        """Replace the value with ``fn(current)`` and return it."""
        value = fn(self.get(key))
        self.set(key, value)
        return value

    def delete(self, key: CacheKey | str) -> bool:
        return self._entries.pop(as_key(key), None) is not None

    def invalidate(self, key: CacheKey | str = (), *, exact: bool = False) -> int:
        """Mark entries stale.

        Args:
            key: Prefix to match. The empty tuple matches every entry.
            exact: Match only ``key`` itself.

        Returns:
            Number of entries marked stale.
        """
        prefix = as_key(key)
        count = 0
        for entry_key, entry in self._entries.items():
            if entry_key == prefix or (not exact and _matches(entry_key, prefix)):
                entry.stale = True
                count += 1
        _logger.debug("cache_invalidated", key=repr(prefix), exact=exact, entries=count)
        return count

    def is_stale(self, key: CacheKey | str) -> bool:
        """True for stale entries and for keys that were never cached."""
        entry = self._entries.get(as_key(key))
        return entry is None or entry.stale

    def stale_keys(self) -> list[CacheKey]:
        return [k for k, e in self._entries.items() if e.stale]

    def register_refetcher(self, prefix: CacheKey | str, refetcher: Refetcher) -> None:
        self._refetchers[as_key(prefix)] = refetcher

    def _refetcher_for(self, key: CacheKey) -> Refetcher | None:
        best: tuple[int, Refetcher] | None = None
        for prefix, refetcher in self._refetchers.items():
            if _matches(key, prefix) and (best is None or len(prefix) > best[0]):
                best = (len(prefix), refetcher)
        return best[1] if best else None

    async def refresh_stale(self) -> int:
        """Refetch every stale entry that has a refetcher.

        A failing refetcher is logged and its entry stays stale.

        Returns:
            Number of entries refreshed.
        """
        refreshed = 0
        for key in self.stale_keys():
            refetcher = self._refetcher_for(key)
            if refetcher is None:
                continue
            try:
                value = await refetcher(key)
            except Exception:
                _logger.warning("cache_refetch_failed", key=repr(key), exc_info=True)
                continue
            entry = self._entries.get(key)
            # Written or removed while the refetch was in flight
            if entry is None or not entry.stale:
                continue
            self.set(key, value)
            refreshed += 1
        return refreshed

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> list[CacheKey]:
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, (tuple, str)):
            return False
        return as_key(key) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CacheKey]:
        return iter(list(self._entries))
