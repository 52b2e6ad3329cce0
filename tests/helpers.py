"""Shared test doubles for notesync tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Iterable
from typing import Any

from notesync.core.errors import HttpFailure, NetworkFailure, TimeoutFailure
from notesync.exceptions import TransportError
from notesync.notifications import NotificationContext, NotificationEvent


class RecordingSleep:
    """Awaitable sleep stand-in that records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await asyncio.sleep(0)


class RecordingNotifier:
    """Notifier that keeps every context it is sent."""

    def __init__(self) -> None:
        self.sent: list[NotificationContext] = []
        self.closed = False

    @property
    def subscribed_events(self) -> set[NotificationEvent]:
        return set(NotificationEvent)

    async def send(self, context: NotificationContext) -> bool:
        self.sent.append(context)
        return True

    async def close(self) -> None:
        self.closed = True


def network_error(code: str = "ECONNREFUSED") -> TransportError:
    return TransportError(NetworkFailure(code=code, message=f"connect {code}"))


def timeout_error() -> TransportError:
    return TransportError(TimeoutFailure(code="ECONNABORTED", message="timeout of 30000ms exceeded"))


def http_error(status: int, body: Any = None) -> TransportError:
    return TransportError(HttpFailure(status=status, message=f"HTTP {status}", body=body))


def scripted(*steps: Any) -> Callable[[], Any]:
    """Request function that raises or returns each step in turn.

    Exceptions in ``steps`` are raised; anything else is returned.
    The returned function exposes ``.calls``.
    """
    remaining = list(steps)

    async def request_fn() -> Any:
        request_fn.calls += 1  # type: ignore[attr-defined]
        step = remaining.pop(0)
        if isinstance(step, BaseException):
            raise step
        return step

    request_fn.calls = 0  # type: ignore[attr-defined]
    return request_fn


# ─── Push transport doubles ───────────────────────────────────────────


class FakePushTransport:
    """In-memory push transport driven by the test.

    ``push()`` delivers a frame, ``drop()`` ends the stream with an error,
    ``finish()`` ends it cleanly. ``fail_open`` makes ``open()`` raise.
    """

    def __init__(self, endpoint: str, *, fail_open: BaseException | None = None) -> None:
        self.endpoint = endpoint
        self.fail_open = fail_open
        self.opened = False
        self.closed = False
        self._queue: asyncio.Queue[tuple[str, Any] | BaseException | None] = asyncio.Queue()

    async def open(self) -> None:
        if self.fail_open is not None:
            raise self.fail_open
        self.opened = True

    def push(self, event_type: str, payload: Any) -> None:
        self._queue.put_nowait((event_type, payload))

    def drop(self, exc: BaseException | None = None) -> None:
        self._queue.put_nowait(exc or network_error("ECONNRESET"))

    def finish(self) -> None:
        self._queue.put_nowait(None)

    async def _frames(self) -> AsyncIterator[tuple[str, Any]]:
        while True:
            item = await self._queue.get()
            if item is None:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    def __aiter__(self) -> AsyncIterator[tuple[str, Any]]:
        return self._frames()

    async def close(self) -> None:
        self.closed = True


class FakePushTransportFactory:
    """Builds FakePushTransports and remembers them in order.

    ``open_failures`` makes the first N transports fail to open.
    """

    def __init__(self, open_failures: Iterable[BaseException] = ()) -> None:
        self.transports: list[FakePushTransport] = []
        self._open_failures = list(open_failures)

    def __call__(self, endpoint: str) -> FakePushTransport:
        fail = self._open_failures.pop(0) if self._open_failures else None
        transport = FakePushTransport(endpoint, fail_open=fail)
        self.transports.append(transport)
        return transport

    @property
    def current(self) -> FakePushTransport:
        return self.transports[-1]


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the loop until ``predicate()`` holds."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0)

    await asyncio.wait_for(_poll(), timeout=timeout)
