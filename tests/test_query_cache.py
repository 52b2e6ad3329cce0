"""Tests for notesync.cache.QueryCache."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from notesync.cache import Cache, QueryCache


class TestBasics:
    def test_satisfies_cache_protocol(self, cache):
        assert isinstance(cache, Cache)

    def test_get_missing_returns_default(self, cache):
        assert cache.get(("notes",)) is None
        assert cache.get(("notes",), default=[]) == []

    def test_set_and_get(self, cache):
        cache.set(("notes",), {"data": {"notes": [], "total": 0}})
        assert cache.get(("notes",)) == {"data": {"notes": [], "total": 0}}
        assert ("notes",) in cache

    def test_string_key_is_one_element_tuple(self, cache):
        cache.set("todos", [1])
        assert cache.get(("todos",)) == [1]
        assert "todos" in cache

    def test_unhashable_membership_is_false(self, cache):
        assert ["notes"] not in cache

    def test_delete(self, cache):
        cache.set(("notes",), 1)
        assert cache.delete(("notes",)) is True
        assert cache.delete(("notes",)) is False
        assert ("notes",) not in cache

    def test_update(self, cache):
        cache.set(("count",), 1)
        assert cache.update(("count",), lambda v: v + 1) == 2
        assert cache.get(("count",)) == 2

    def test_set_clears_staleness(self, cache):
        cache.set(("notes",), 1)
        cache.invalidate(("notes",))
        cache.set(("notes",), 2)
        assert cache.is_stale(("notes",)) is False


class TestInvalidate:
    def test_prefix_match(self, cache):
        cache.set(("notes",), 1)
        cache.set(("notes", (("page", 2),)), 2)
        cache.set(("todos",), 3)

        assert cache.invalidate(("notes",)) == 2

        assert cache.is_stale(("notes",))
        assert cache.is_stale(("notes", (("page", 2),)))
        assert not cache.is_stale(("todos",))

    def test_exact_match(self, cache):
        cache.set(("notes",), 1)
        cache.set(("notes", "trash"), 2)
        assert cache.invalidate(("notes",), exact=True) == 1
        assert not cache.is_stale(("notes", "trash"))

    def test_empty_prefix_invalidates_everything(self, cache):
        cache.set(("a",), 1)
        cache.set(("b", 1), 2)
        assert cache.invalidate(()) == 2
        assert sorted(cache.stale_keys()) == [("a",), ("b", 1)]

    def test_value_kept_while_stale(self, cache):
        cache.set(("notes",), "last known")
        cache.invalidate(("notes",))
        assert cache.get(("notes",)) == "last known"

    def test_missing_key_counts_as_stale(self, cache):
        assert cache.is_stale(("never",)) is True
        assert cache.invalidate(("never",)) == 0

    def test_prefix_does_not_match_similar_names(self, cache):
        cache.set(("tasks-stats",), 1)
        cache.invalidate(("tasks",))
        assert not cache.is_stale(("tasks-stats",))


class TestRefresh:
    @pytest.mark.asyncio
    async def test_refresh_stale_uses_refetcher(self, cache):
        cache.set(("notes",), "old")
        cache.set(("todos",), "untouched")
        refetch = AsyncMock(return_value="fresh")
        cache.register_refetcher(("notes",), refetch)

        cache.invalidate(())
        refreshed = await cache.refresh_stale()

        assert refreshed == 1
        refetch.assert_awaited_once_with(("notes",))
        assert cache.get(("notes",)) == "fresh"
        assert not cache.is_stale(("notes",))
        assert cache.is_stale(("todos",))

    @pytest.mark.asyncio
    async def test_longest_prefix_refetcher_wins(self, cache):
        broad = AsyncMock(return_value="broad")
        narrow = AsyncMock(return_value="narrow")
        cache.register_refetcher(("notes",), broad)
        cache.register_refetcher(("notes", "trash"), narrow)
        cache.set(("notes", "trash"), None)
        cache.invalidate(("notes",))

        await cache.refresh_stale()

        assert cache.get(("notes", "trash")) == "narrow"
        broad.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_refetch_leaves_entry_stale(self, cache):
        cache.set(("notes",), "old")
        cache.register_refetcher(("notes",), AsyncMock(side_effect=RuntimeError("offline")))
        cache.invalidate(("notes",))

        assert await cache.refresh_stale() == 0
        assert cache.get(("notes",)) == "old"
        assert cache.is_stale(("notes",))

    @pytest.mark.asyncio
    async def test_write_during_refetch_wins(self, cache):
        cache.set(("notes",), "old")

        async def refetch(key):
            cache.set(key, "written meanwhile")
            return "refetched"

        cache.register_refetcher(("notes",), refetch)
        cache.invalidate(("notes",))
        await cache.refresh_stale()

        assert cache.get(("notes",)) == "written meanwhile"


def test_len_iter_clear():
    cache = QueryCache()
    cache.set(("a",), 1)
    cache.set(("b",), 2)
    assert len(cache) == 2
    assert list(cache) == [("a",), ("b",)]
    cache.clear()
    assert cache.keys() == []
