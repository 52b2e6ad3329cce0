"""Tests for the notes API facade and its optimistic writes."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from notesync.api import NotesApi, unwrap_envelope
from notesync.api.notes import TEMP_ID_PREFIX, optimistic_note, prepend_note, remove_note
from notesync.core.config import TransportConfig
from notesync.core.errors import ErrorKind, UnknownFailure
from notesync.exceptions import TransportError
from notesync.mutations import MutationCoordinator
from notesync.sync.bindings import NOTES_KEY, TASK_STATS_KEY
from notesync.transport import HttpTransport


def _note(note_id: str) -> dict:
    return {"id": note_id, "content": f"note {note_id}"}


def _listing(*ids: str) -> dict:
    return {"data": {"notes": [_note(i) for i in ids], "total": len(ids)}}


class Backend:
    """Scripted notes backend behind httpx.MockTransport."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responses: list[httpx.Response] = []
        self.gate: asyncio.Event | None = None

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.responses:
            return self.responses.pop(0)
        return httpx.Response(200, json={"success": True, "data": None})

    def reply(self, status: int = 200, **kwargs) -> None:
        self.responses.append(httpx.Response(status, **kwargs))


@pytest.fixture
def backend() -> Backend:
    return Backend()


@pytest.fixture
def api(backend, cache, pipeline) -> NotesApi:
    transport = HttpTransport(
        TransportConfig(base_url="http://backend:3001", platform="desktop"),
        http_transport=httpx.MockTransport(backend),
    )
    return NotesApi(transport, coordinator=MutationCoordinator(cache, pipeline))


# ─── Envelope ─────────────────────────────────────────────────────────


class TestEnvelope:
    def test_success_returns_data(self):
        assert unwrap_envelope({"success": True, "data": {"id": "n1"}}) == {"id": "n1"}

    def test_failure_raises_with_server_text(self):
        with pytest.raises(TransportError) as exc_info:
            unwrap_envelope({"success": False, "error": "Content is required"})
        assert exc_info.value.failure == UnknownFailure(message="Content is required")

    def test_bare_body_passes_through(self):
        assert unwrap_envelope([1, 2]) == [1, 2]
        assert unwrap_envelope(None) is None


# ─── Speculative updates ──────────────────────────────────────────────


class TestSpeculativeUpdates:
    def test_optimistic_note_shape(self):
        note = optimistic_note("buy milk", category="errands", tags=["home"])

        assert note["id"].startswith(TEMP_ID_PREFIX)
        assert note["id"][len(TEMP_ID_PREFIX):].isdigit()
        assert note["content"] == "buy milk"
        assert note["createdAt"] == note["updatedAt"]
        assert note["tags"] == ["home"]
        assert note["importance"] is None

    def test_prepend_to_existing_list(self):
        placeholder = _note("temp-1")
        updated = prepend_note(placeholder)(_listing("a", "b"))

        assert updated["data"]["notes"][0] is placeholder
        assert [n["id"] for n in updated["data"]["notes"]] == ["temp-1", "a", "b"]
        assert updated["data"]["total"] == 3

    @pytest.mark.parametrize("current", [None, {}, {"data": {"notes": [], "total": 0}}])
    def test_prepend_to_empty_list(self, current):
        placeholder = _note("temp-1")
        assert prepend_note(placeholder)(current) == {"data": {"notes": [placeholder], "total": 1}}

    def test_remove_from_list(self):
        updated = remove_note("a")(_listing("a", "b"))
        assert updated == _listing("b")

    def test_remove_never_goes_negative(self):
        current = {"data": {"notes": [_note("a")], "total": 0}}
        assert remove_note("a")(current)["data"]["total"] == 0

    def test_remove_from_empty_list_is_noop(self):
        current = {"data": {"notes": [], "total": 0}}
        assert remove_note("a")(current) is current
        assert remove_note("a")(None) is None


# ─── Endpoints ────────────────────────────────────────────────────────


class TestEndpoints:
    @pytest.mark.asyncio
    async def test_list_sends_filters(self, api, backend):
        backend.reply(json={"success": True, "data": {"notes": [], "total": 0}})

        outcome = await api.list(note_date="2024-05-01", tags=None, page=1, page_size=20)

        assert outcome.success is True
        assert outcome.data == {"notes": [], "total": 0}
        params = backend.requests[0].url.params
        assert params["date"] == "2024-05-01"
        assert params["pageSize"] == "20"
        assert "tags" not in params
        assert backend.requests[0].headers["X-Platform"] == "desktop"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("call", "method", "path"),
        [
            (lambda api: api.get("n1"), "GET", "/api/notes/n1"),
            (lambda api: api.search("milk"), "GET", "/api/notes/search"),
            (lambda api: api.list_trash(), "GET", "/api/notes/trash"),
            (lambda api: api.update("n1", {"content": "x"}), "PUT", "/api/notes/n1"),
            (lambda api: api.delete("n1"), "DELETE", "/api/notes/n1"),
            (lambda api: api.trash("n1"), "PATCH", "/api/notes/n1/trash"),
            (lambda api: api.restore("n1"), "PATCH", "/api/notes/n1/restore"),
            (lambda api: api.delete_permanently("n1"), "DELETE", "/api/notes/n1/permanent"),
        ],
    )
    async def test_routes(self, api, backend, call, method, path):
        outcome = await call(api)

        assert outcome.success is True
        assert backend.requests[0].method == method
        assert backend.requests[0].url.path == path

    @pytest.mark.asyncio
    async def test_create_omits_unset_fields(self, api, backend):
        backend.reply(201, json={"success": True, "data": _note("n9")})

        outcome = await api.create("hello", importance=3)

        assert outcome.data == _note("n9")
        assert json.loads(backend.requests[0].content) == {"content": "hello", "importance": 3}

    @pytest.mark.asyncio
    async def test_server_error_message_reaches_user(self, api, backend, notifier):
        backend.reply(400, json={"success": False, "error": "Content is required"})

        outcome = await api.create("")

        assert outcome.success is False
        assert outcome.error.kind is ErrorKind.CLIENT_ERROR
        assert outcome.error.user_message == "Content is required"
        assert len(notifier.sent) == 1

    @pytest.mark.asyncio
    async def test_success_false_on_2xx_is_a_failure(self, api, backend):
        backend.reply(200, json={"success": False, "error": "Database locked"})

        outcome = await api.get("n1")

        assert outcome.success is False
        assert outcome.error.kind is ErrorKind.UNKNOWN
        assert len(backend.requests) == 1

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, api, backend, sleep):
        backend.reply(503)
        backend.reply(json={"success": True, "data": _note("n1")})

        outcome = await api.get("n1")

        assert outcome.success is True
        assert outcome.attempts == 2
        assert len(sleep.calls) == 1


# ─── Optimistic writes ────────────────────────────────────────────────


class TestOptimisticWrites:
    @pytest.mark.asyncio
    async def test_create_shows_placeholder_until_settled(self, api, backend, cache):
        cache.set(NOTES_KEY, _listing("a"))
        backend.gate = asyncio.Event()

        task = asyncio.create_task(api.create_optimistic("draft"))
        await asyncio.sleep(0)

        notes = cache.get(NOTES_KEY)["data"]["notes"]
        assert notes[0]["id"].startswith(TEMP_ID_PREFIX)
        assert notes[0]["content"] == "draft"
        assert cache.get(NOTES_KEY)["data"]["total"] == 2

        backend.reply(201, json={"success": True, "data": _note("n2")})
        backend.gate.set()
        outcome = await task

        assert outcome.success is True
        assert cache.is_stale(NOTES_KEY)
        assert cache.is_stale(TASK_STATS_KEY)

    @pytest.mark.asyncio
    async def test_failed_create_restores_list(self, api, backend, cache):
        before = _listing("a")
        cache.set(NOTES_KEY, _listing("a"))
        backend.reply(422, json={"success": False, "error": "Too long"})

        outcome = await api.create_optimistic("x" * 10_000)

        assert outcome.success is False
        assert cache.get(NOTES_KEY) == before

    @pytest.mark.asyncio
    async def test_failed_delete_restores_note(self, api, backend, cache):
        """Three 500s, then the note is back exactly as it was."""
        before = _listing("x", "y")
        cache.set(NOTES_KEY, _listing("x", "y"))
        for _ in range(3):
            backend.reply(500, json={"success": False, "error": "Internal error"})

        outcome = await api.delete_optimistic("x")

        assert outcome.success is False
        assert outcome.error.retry_count == 2
        assert len(backend.requests) == 3
        assert cache.get(NOTES_KEY) == before

    @pytest.mark.asyncio
    async def test_delete_hides_note_then_invalidates(self, api, backend, cache):
        cache.set(NOTES_KEY, _listing("x", "y"))
        backend.gate = asyncio.Event()

        task = asyncio.create_task(api.delete_optimistic("x"))
        await asyncio.sleep(0)
        assert cache.get(NOTES_KEY) == _listing("y")

        backend.gate.set()
        assert (await task).success is True
        assert cache.is_stale(NOTES_KEY)


# ─── Refetch ──────────────────────────────────────────────────────────


class TestRefetch:
    @pytest.mark.asyncio
    async def test_refetcher_reloads_stale_list(self, api, backend, cache):
        api.register_refetchers(cache)
        cache.set(NOTES_KEY, _listing("old"))
        cache.invalidate(NOTES_KEY)
        backend.reply(json={"success": True, "data": {"notes": [_note("new")], "total": 1}})

        assert await cache.refresh_stale() == 1
        assert cache.get(NOTES_KEY) == _listing("new")

    @pytest.mark.asyncio
    async def test_failed_refetch_keeps_entry_stale(self, api, backend, cache):
        api.register_refetchers(cache)
        cache.set(NOTES_KEY, _listing("old"))
        cache.invalidate(NOTES_KEY)
        backend.reply(404)

        assert await cache.refresh_stale() == 0
        assert cache.is_stale(NOTES_KEY)
        assert cache.get(NOTES_KEY) == _listing("old")
