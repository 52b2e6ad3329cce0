"""EventStreamConnection: one long-lived server-push channel.

The connection owns a background asyncio task that opens the push
transport, dispatches frames to the registry in delivery order, and on any
drop waits out an exponential backoff before opening a fresh transport.
Subscriptions live on the connection, not on the transport, so they
survive every reconnect. Events pushed while disconnected are not replayed;
subscribers of ``connected`` should re-fetch authoritative state.

Usage::

    connection = EventStreamConnection(HttpxSSETransportFactory())
    unsubscribe = connection.on("note.created", handle_note)
    await connection.connect("http://localhost:3001/api/sse")
    ...
    await connection.close()
"""

from __future__ import annotations

import asyncio
import random
from collections import deque
from collections.abc import Callable
from typing import Any

from notesync.core.config import ReconnectConfig
from notesync.core.logging import get_logger
from notesync.events.registry import EventSubscriptionRegistry
from notesync.events.types import (
    CONNECTED_EVENT,
    ConnectionState,
    EventHandler,
    PushTransport,
    PushTransportFactory,
    StreamEvent,
)
from notesync.exceptions import ConnectionClosedError
from notesync.execution.retry_policy import backoff_base_ms, jittered_delay_ms

_logger = get_logger("events.stream")

StateListener = Callable[[ConnectionState], Any]
SleepFn = Callable[[float], Any]


class EventStreamConnection:
    """Reconnecting push-channel client with per-connection subscriptions.

    Args:
        transport_factory: Builds one unopened transport per open attempt.
            Defaults to SSE over httpx.
        reconnect: Backoff between reconnect attempts. ``max_attempts`` is
            ignored; reconnects continue until ``close()``.
        registry: Subscription registry. A fresh one per connection by default.
        rng: Jitter source, injectable for deterministic tests.
        history_size: How many recent events ``recent_events()`` keeps.
        sleep: Awaitable sleep in seconds, injectable for tests.
    """

    def __init__(
        self,
        transport_factory: PushTransportFactory | None = None,
        *,
        reconnect: ReconnectConfig | None = None,
        registry: EventSubscriptionRegistry | None = None,
        rng: random.Random | None = None,
        sleep: SleepFn = asyncio.sleep,
        history_size: int = 100,
    ) -> None:
        if transport_factory is None:
            from notesync.events.sse import HttpxSSETransportFactory

            transport_factory = HttpxSSETransportFactory()
        self._factory = transport_factory
        self._reconnect = reconnect or ReconnectConfig()
        self.registry = registry or EventSubscriptionRegistry()
        self._rng = rng or random.Random()
        self._sleep = sleep

        self._state = ConnectionState.DISCONNECTED
        self._state_listeners: list[StateListener] = []
        self._endpoint: str | None = None
        self._transport: PushTransport | None = None
        self._run_task: asyncio.Task[None] | None = None
        self._connected = asyncio.Event()
        self._closed = False
        self._open_count = 0
        self._history: deque[StreamEvent] = deque(maxlen=history_size)

    # ─── State ────────────────────────────────────────────────────────

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def endpoint(self) -> str | None:
        return self._endpoint

    @property
    def open_count(self) -> int:
        """Number of successful transport opens so far."""
        return self._open_count

    def recent_events(self) -> list[StreamEvent]:
        """Most recent events received, oldest first."""
        return list(self._history)

    def clear_events(self) -> None:
        self._history.clear()

    def add_state_listener(self, listener: StateListener) -> Callable[[], None]:
        """Observe state transitions. Returns a function removing the listener."""
        self._state_listeners.append(listener)

        def remove() -> None:
            if listener in self._state_listeners:
                self._state_listeners.remove(listener)

        return remove

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        previous, self._state = self._state, state
        if state is ConnectionState.CONNECTED:
            self._connected.set()
        else:
            self._connected.clear()
        _logger.debug("state_changed", previous=previous.value, state=state.value)
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception:
                _logger.warning("state_listener_failed", state=state.value, exc_info=True)

    # ─── Subscriptions ────────────────────────────────────────────────

    def on(self, event_type: str, handler: EventHandler) -> Callable[[], bool]:
        """Register ``handler`` for ``event_type``.

        Returns:
            A function that removes exactly this registration.
        """
        subscription = self.registry.subscribe(event_type, handler)
        return lambda: self.registry.unsubscribe(subscription.id)

    # ─── Lifecycle ────────────────────────────────────────────────────

    async def connect(self, endpoint: str) -> None:
        """Start maintaining a channel to ``endpoint`` in the background.

        Returns once the connection task is scheduled; use
        ``wait_connected()`` to wait for the first open. Calling again with
        the same endpoint while running is a no-op; a different endpoint
        replaces the current channel.

        Raises:
            ConnectionClosedError: if ``close()`` was already called.
        """
        if self._closed:
            raise ConnectionClosedError("Event stream connection is closed")
        if self._run_task is not None and not self._run_task.done():
            if endpoint == self._endpoint:
                return
            await self._stop_task()

        self._endpoint = endpoint
        _logger.info("stream_connecting", endpoint=endpoint)
        self._run_task = asyncio.create_task(self._run(endpoint), name="event-stream")

    async def reconnect(self) -> None:
        """Drop the current channel and open a new one right away."""
        if self._closed:
            raise ConnectionClosedError("Event stream connection is closed")
        if self._endpoint is None:
            raise RuntimeError("reconnect() called before connect()")
        await self._stop_task()
        _logger.info("stream_manual_reconnect", endpoint=self._endpoint)
        self._run_task = asyncio.create_task(self._run(self._endpoint), name="event-stream")

    async def wait_connected(self, timeout: float | None = None) -> bool:
        """Wait until the channel is open.

        Returns:
            True if connected, False if ``timeout`` elapsed first.
        """
        try:
            await asyncio.wait_for(self._connected.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True

    async def close(self) -> None:
        """Tear down the channel, cancel pending reconnects, drop subscriptions.

        Idempotent.
        """
        if self._closed:
            return
        self._closed = True
        await self._stop_task()
        self.registry.clear()
        self._set_state(ConnectionState.DISCONNECTED)
        _logger.info("stream_closed", endpoint=self._endpoint)

    async def __aenter__(self) -> EventStreamConnection:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _stop_task(self) -> None:
        task, self._run_task = self._run_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._close_transport()

    async def _close_transport(self) -> None:
        transport, self._transport = self._transport, None
        if transport is None:
            return
        try:
            await transport.close()
        except Exception:
            _logger.debug("transport_close_failed", exc_info=True)

    # ─── Connection loop ──────────────────────────────────────────────

    def reconnect_delay_ms(self, failures: int) -> int:
        """Backoff before reconnect number ``failures`` since the last open."""
        base = backoff_base_ms(failures, self._reconnect)
        return jittered_delay_ms(base, self._reconnect.jitter_fraction, self._rng)

    async def _run(self, endpoint: str) -> None:
        failures = 0
        while not self._closed:
            self._set_state(ConnectionState.CONNECTING)
            transport = self._factory(endpoint)
            self._transport = transport
            try:
                await transport.open()
                failures = 0
                self._open_count += 1
                self._set_state(ConnectionState.CONNECTED)
                _logger.info("stream_connected", endpoint=endpoint, open_count=self._open_count)
                self.registry.dispatch(CONNECTED_EVENT, {"endpoint": endpoint})

                async for event_type, payload in transport:
                    event = StreamEvent(type=event_type, payload=payload)
                    self._history.append(event)
                    self.registry.dispatch(event.type, event.payload)
                _logger.warning("stream_ended_by_server", endpoint=endpoint)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                _logger.warning(
                    "stream_error",
                    endpoint=endpoint,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
            finally:
                if self._transport is transport:
                    await self._close_transport()

            if self._closed:
                return
            self._set_state(ConnectionState.ERROR)
            failures += 1
            delay_ms = self.reconnect_delay_ms(failures)
            _logger.info("stream_reconnect_scheduled", attempt=failures, delay_ms=delay_ms)
            await self._sleep(delay_ms / 1000)
