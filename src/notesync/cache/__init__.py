"""Keyed query cache used by mutations and push-event bindings."""

from notesync.cache.base import Cache, CacheEntry, CacheKey, DeletableCache, QueryCache, as_key

__all__ = ["Cache", "CacheEntry", "CacheKey", "DeletableCache", "QueryCache", "as_key"]
