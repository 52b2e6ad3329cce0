"""Outbound HTTP transport and platform detection."""

from notesync.transport.http import HttpTransport
from notesync.transport.platform import (
    PLATFORM_HEADER,
    Platform,
    detect_platform,
    resolve_api_base,
)

__all__ = [
    "PLATFORM_HEADER",
    "HttpTransport",
    "Platform",
    "detect_platform",
    "resolve_api_base",
]
