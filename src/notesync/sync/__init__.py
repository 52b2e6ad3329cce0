"""Keeps the query cache in step with server-push events."""

from notesync.sync.bindings import DEFAULT_RULES, CacheRule, CacheSyncBinder

__all__ = ["DEFAULT_RULES", "CacheRule", "CacheSyncBinder"]
