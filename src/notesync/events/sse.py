"""Server-Sent Events push transport over httpx streaming.

Wire format, one frame per blank-line-terminated block::

    event: note.created
    data: {"id": "n1"}

Lines starting with ``:`` are comments (keep-alives) and are ignored.
Frame data is JSON; a frame whose data does not decode is logged and
dropped.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import httpx

from notesync.core.errors import normalize_failure
from notesync.core.logging import get_logger
from notesync.exceptions import TransportError
from notesync.transport.platform import PLATFORM_HEADER, detect_platform

_logger = get_logger("events.sse")

DEFAULT_EVENT_TYPE = "message"


@dataclass
class SSEFrame:
    """A decoded SSE frame before its data is parsed."""

    event: str
    data: str
    id: str | None = None
    retry: int | None = None

    def format(self) -> str:
        """Format as SSE wire format."""
        lines = []
        if self.id:
            lines.append(f"id: {self.id}")
        if self.retry:
            lines.append(f"retry: {self.retry}")
        lines.append(f"event: {self.event}")
        for line in self.data.split("\n"):
            lines.append(f"data: {line}")
        lines.append("")
        return "\n".join(lines) + "\n"


class SSEFrameDecoder:
    """Incremental line decoder. Feed lines without terminators."""

    def __init__(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._event: str | None = None
        self._data: list[str] = []
        self._id: str | None = None
        self._retry: int | None = None

    def feed(self, line: str) -> SSEFrame | None:
        """Consume one line; return a frame when a block completes."""
        line = line.rstrip("\r")
        if not line:
            if not self._data:
                self._reset()
                return None
            frame = SSEFrame(
                event=self._event or DEFAULT_EVENT_TYPE,
                data="\n".join(self._data),
                id=self._id,
                retry=self._retry,
            )
            self._reset()
            return frame

        if line.startswith(":"):
            return None

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        elif name == "id":
            self._id = value
        elif name == "retry":
            if value.isdigit():
                self._retry = int(value)
        return None


def parse_frame(frame: SSEFrame) -> tuple[str, Any] | None:
    """Decode the JSON data of a frame, or None if it is malformed."""
    try:
        payload = json.loads(frame.data)
    except ValueError:
        _logger.warning("frame_decode_failed", event_type=frame.event, data_length=len(frame.data))
        return None
    return frame.event, payload


class HttpxSSETransport:
    """One SSE stream opened with ``httpx.AsyncClient.send(stream=True)``.

    Args:
        endpoint: Absolute URL of the event stream.
        client: Shared client. When omitted, a client is created on open
            and closed with the transport.
        read_timeout_seconds: Idle read timeout; None waits indefinitely.
        headers: Extra request headers.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        client: httpx.AsyncClient | None = None,
        read_timeout_seconds: float | None = None,
        headers: dict[str, str] | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint
        self._client = client
        self._owns_client = client is None
        self._read_timeout = read_timeout_seconds
        self._headers = {
            "Accept": "text/event-stream",
            "Cache-Control": "no-cache",
            PLATFORM_HEADER: detect_platform(),
            **(headers or {}),
        }
        self._http_transport = http_transport
        self._response: httpx.Response | None = None

    async def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(10.0, read=self._read_timeout),
                transport=self._http_transport,
            )
        request = self._client.build_request("GET", self.endpoint, headers=self._headers)
        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise TransportError(normalize_failure(exc)) from exc

        if response.is_error:
            await response.aread()
            await response.aclose()
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise TransportError(normalize_failure(exc)) from exc
        self._response = response
        _logger.debug("sse_opened", endpoint=self.endpoint, status_code=response.status_code)

    async def _frames(self) -> AsyncIterator[tuple[str, Any]]:
        if self._response is None:
            raise RuntimeError("SSE transport iterated before open()")
        decoder = SSEFrameDecoder()
        try:
            async for line in self._response.aiter_lines():
                frame = decoder.feed(line)
                if frame is None:
                    continue
                parsed = parse_frame(frame)
                if parsed is not None:
                    yield parsed
        except httpx.HTTPError as exc:
            raise TransportError(normalize_failure(exc)) from exc

    def __aiter__(self) -> AsyncIterator[tuple[str, Any]]:
        return self._frames()

    async def close(self) -> None:
        response, self._response = self._response, None
        if response is not None:
            await response.aclose()
        if self._owns_client and self._client is not None:
            client, self._client = self._client, None
            await client.aclose()


class HttpxSSETransportFactory:
    """Default ``PushTransportFactory``: one HttpxSSETransport per open attempt."""

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        read_timeout_seconds: float | None = None,
        headers: dict[str, str] | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = client
        self._read_timeout = read_timeout_seconds
        self._headers = headers
        self._http_transport = http_transport

    def __call__(self, endpoint: str) -> HttpxSSETransport:
        return HttpxSSETransport(
            endpoint,
            client=self._client,
            read_timeout_seconds=self._read_timeout,
            headers=self._headers,
            http_transport=self._http_transport,
        )
