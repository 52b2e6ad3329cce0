"""Server-push event stream: subscriptions, SSE decoding, reconnecting connection."""

from notesync.events.registry import EventSubscriptionRegistry
from notesync.events.sse import HttpxSSETransport, HttpxSSETransportFactory, SSEFrame, SSEFrameDecoder
from notesync.events.stream import EventStreamConnection
from notesync.events.types import (
    CONNECTED_EVENT,
    ConnectionState,
    EventHandler,
    PushTransport,
    PushTransportFactory,
    StreamEvent,
    Subscription,
)

__all__ = [
    "CONNECTED_EVENT",
    "ConnectionState",
    "EventHandler",
    "EventStreamConnection",
    "EventSubscriptionRegistry",
    "HttpxSSETransport",
    "HttpxSSETransportFactory",
    "PushTransport",
    "PushTransportFactory",
    "SSEFrame",
    "SSEFrameDecoder",
    "StreamEvent",
    "Subscription",
]
