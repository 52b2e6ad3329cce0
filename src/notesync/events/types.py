"""Types shared by the event-stream modules."""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol

EventHandler = Callable[[Any], Any]
"""Subscriber callback. Receives the event payload, invoked synchronously."""

CONNECTED_EVENT = "connected"


class ConnectionState(str, Enum):
    """Lifecycle of an event-stream connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass(frozen=True)
class StreamEvent:
    """One server-pushed notification, as decoded from the transport."""

    type: str
    payload: Any
    received_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class Subscription:
    """A single handler registration for one event type."""

    event_type: str
    handler: EventHandler
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


class PushTransport(Protocol):
    """One open attempt of a server-push channel.

    ``open()`` resolves once the channel is established. Iterating yields
    ``(event_type, payload)`` pairs in delivery order and ends when the
    server closes the channel. Errors raise ``TransportError``.
    """

    async def open(self) -> None: ...

    def __aiter__(self) -> AsyncIterator[tuple[str, Any]]: ...

    async def close(self) -> None: ...


PushTransportFactory = Callable[[str], PushTransport]
"""Builds a fresh, unopened transport for an endpoint."""
