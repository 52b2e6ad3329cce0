"""Notes API facade.

Every call goes through the request pipeline, so callers get a
``RequestOutcome`` and never see transport exceptions. The server wraps
bodies as ``{"success": true, "data": ...}``; outcomes carry ``data``.

The cached notes list under ``("notes",)`` keeps the server envelope
shape ``{"data": {"notes": [...], "total": n}}`` so optimistic writes and
refetches are interchangeable.
"""

from __future__ import annotations

import time
from datetime import UTC, date, datetime
from typing import Any

from notesync.cache import QueryCache
from notesync.core.errors import RequestOutcome, UnknownFailure
from notesync.core.logging import get_logger
from notesync.exceptions import NoteSyncError, TransportError
from notesync.execution.pipeline import RequestPipeline
from notesync.mutations.coordinator import MutationCoordinator
from notesync.sync.bindings import NOTES_KEY, TASK_STATS_KEY
from notesync.transport.http import HttpTransport

_logger = get_logger("api.notes")

NOTES_PATH = "/api/notes"
TEMP_ID_PREFIX = "temp-"


def unwrap_envelope(body: Any) -> Any:
    """Return ``data`` from a ``{"success": ..., "data": ...}`` body.

    Raises:
        TransportError: when a 2xx body reports ``success: false``.
    """
    if not isinstance(body, dict) or "success" not in body:
        return body
    if body["success"] is False:
        message = body.get("error") or body.get("message") or ""
        raise TransportError(UnknownFailure(message=str(message)))
    return body.get("data")


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _iso(value: date | str | None) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return value.isoformat()


def optimistic_note(
    content: str,
    *,
    note_date: date | str | None = None,
    category: str | None = None,
    tags: list[str] | None = None,
    importance: int | None = None,
) -> dict[str, Any]:
    """Placeholder note shown until the server returns the real one."""
    now = _now_iso()
    return {
        "id": f"{TEMP_ID_PREFIX}{int(time.time() * 1000)}",
        "content": content,
        "date": _iso(note_date) or now,
        "createdAt": now,
        "updatedAt": now,
        "category": category,
        "tags": list(tags or []),
        "importance": importance,
    }


def prepend_note(note: dict[str, Any]):
    """Speculative update adding ``note`` to the front of a cached list."""

    def update(current: Any) -> Any:
        data = current.get("data") if isinstance(current, dict) else None
        if not isinstance(data, dict) or not data.get("notes"):
            return {"data": {"notes": [note], "total": 1}}
        return {
            "data": {
                "notes": [note, *data["notes"]],
                "total": data.get("total", len(data["notes"])) + 1,
            }
        }

    return update


def remove_note(note_id: str):
    """Speculative update dropping ``note_id`` from a cached list."""

    def update(current: Any) -> Any:
        data = current.get("data") if isinstance(current, dict) else None
        if not isinstance(data, dict) or not data.get("notes"):
            return current
        return {
            "data": {
                "notes": [n for n in data["notes"] if n.get("id") != note_id],
                "total": max(0, data.get("total", len(data["notes"])) - 1),
            }
        }

    return update


class NotesApi:
    """Typed entry points for the notes endpoints.

    Args:
        transport: HTTP transport bound to the API base URL.
        pipeline: Retry pipeline. Defaults to the coordinator's pipeline.
        coordinator: Used by the optimistic create and delete calls.
            Defaults to one over a fresh QueryCache.
    """

    def __init__(
        self,
        transport: HttpTransport,
        *,
        pipeline: RequestPipeline | None = None,
        coordinator: MutationCoordinator | None = None,
    ) -> None:
        self.transport = transport
        if coordinator is None:
            coordinator = MutationCoordinator(QueryCache(), pipeline or RequestPipeline())
        self.coordinator = coordinator
        self.pipeline = pipeline or coordinator.pipeline

    @property
    def cache(self) -> Any:
        return self.coordinator.cache

    def _call(self, method: str, path: str, *, json: Any = None, params: dict[str, Any] | None = None):
        async def request() -> Any:
            body = await self.transport.request(method, path, json=json, params=params)
            return unwrap_envelope(body)

        return request

    async def _send(self, method: str, path: str, **kwargs: Any) -> RequestOutcome[Any]:
        return await self.pipeline.send(self._call(method, path, **kwargs))

    # ─── Reads ────────────────────────────────────────────────────────

    async def list(
        self,
        *,
        note_date: date | str | None = None,
        category: str | None = None,
        tags: list[str] | None = None,
        page: int | None = None,
        page_size: int | None = None,
    ) -> RequestOutcome[Any]:
        params = {
            "date": _iso(note_date),
            "category": category,
            "tags": tags,
            "page": page,
            "pageSize": page_size,
        }
        return await self._send(
            "GET", NOTES_PATH, params={k: v for k, v in params.items() if v is not None}
        )

    async def get(self, note_id: str) -> RequestOutcome[Any]:
        return await self._send("GET", f"{NOTES_PATH}/{note_id}")

    async def search(self, query: str) -> RequestOutcome[Any]:
        return await self._send("GET", f"{NOTES_PATH}/search", params={"q": query})

    async def list_trash(self) -> RequestOutcome[Any]:
        return await self._send("GET", f"{NOTES_PATH}/trash")

    # ─── Writes ───────────────────────────────────────────────────────

    async def create(
        self,
        content: str,
        *,
        note_date: date | str | None = None,
        category: str | None = None,
        tags: list[str] | None = None,
        importance: int | None = None,
    ) -> RequestOutcome[Any]:
        return await self._send(
            "POST",
            NOTES_PATH,
            json=self._create_body(content, note_date, category, tags, importance),
        )

    async def update(self, note_id: str, changes: dict[str, Any]) -> RequestOutcome[Any]:
        return await self._send("PUT", f"{NOTES_PATH}/{note_id}", json=changes)

    async def delete(self, note_id: str) -> RequestOutcome[Any]:
        return await self._send("DELETE", f"{NOTES_PATH}/{note_id}")

    async def trash(self, note_id: str) -> RequestOutcome[Any]:
        return await self._send("PATCH", f"{NOTES_PATH}/{note_id}/trash")

    async def restore(self, note_id: str) -> RequestOutcome[Any]:
        return await self._send("PATCH", f"{NOTES_PATH}/{note_id}/restore")

    async def delete_permanently(self, note_id: str) -> RequestOutcome[Any]:
        return await self._send("DELETE", f"{NOTES_PATH}/{note_id}/permanent")

    @staticmethod
    def _create_body(
        content: str,
        note_date: date | str | None,
        category: str | None,
        tags: list[str] | None,
        importance: int | None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"content": content}
        optional = {
            "date": _iso(note_date),
            "category": category,
            "tags": tags,
            "importance": importance,
        }
        body.update({k: v for k, v in optional.items() if v is not None})
        return body

    # ─── Optimistic writes ────────────────────────────────────────────

    async def create_optimistic(
        self,
        content: str,
        *,
        note_date: date | str | None = None,
        category: str | None = None,
        tags: list[str] | None = None,
        importance: int | None = None,
    ) -> RequestOutcome[Any]:
        """Show a placeholder note immediately, then create it on the server."""
        placeholder = optimistic_note(
            content,
            note_date=note_date,
            category=category,
            tags=tags,
            importance=importance,
        )
        return await self.coordinator.mutate(
            NOTES_KEY,
            prepend_note(placeholder),
            self._call(
                "POST",
                NOTES_PATH,
                json=self._create_body(content, note_date, category, tags, importance),
            ),
            invalidate_also=(TASK_STATS_KEY,),
        )

    async def delete_optimistic(self, note_id: str) -> RequestOutcome[Any]:
        """Hide the note immediately, then delete it on the server."""
        return await self.coordinator.mutate(
            NOTES_KEY,
            remove_note(note_id),
            self._call("DELETE", f"{NOTES_PATH}/{note_id}"),
            invalidate_also=(TASK_STATS_KEY,),
        )

    # ─── Cache wiring ─────────────────────────────────────────────────

    def register_refetchers(self, cache: QueryCache) -> None:
        """Let ``cache.refresh_stale()`` reload the notes list."""

        async def refetch_notes(key: tuple[Any, ...]) -> Any:
            outcome = await self.list()
            if not outcome.success:
                message = outcome.error.user_message if outcome.error else "refetch failed"
                raise NoteSyncError(message)
            return {"data": outcome.data}

        cache.register_refetcher(NOTES_KEY, refetch_notes)
        _logger.debug("refetcher_registered", key=repr(NOTES_KEY))
