"""Platform detection for the X-Platform request header."""

from __future__ import annotations

import os
import sys
from typing import Literal

from notesync.core.config import (
    DEFAULT_CLOUD_API_URL,
    DEFAULT_LOCAL_API_URL,
    PLATFORM_ENV,
    TransportConfig,
)

Platform = Literal["desktop", "android", "ios", "web"]

PLATFORM_HEADER = "X-Platform"

_KNOWN_PLATFORMS: frozenset[str] = frozenset({"desktop", "android", "ios", "web"})


def detect_platform() -> Platform:
    """Return the platform this client runs on.

    NOTESYNC_PLATFORM wins when set to a known value. Otherwise Android and
    iOS builds are recognized from the interpreter, and everything else is
    a desktop install.
    """
    override = os.environ.get(PLATFORM_ENV, "").strip().lower()
    if override in _KNOWN_PLATFORMS:
        return override  # type: ignore[return-value]
    if hasattr(sys, "getandroidapilevel") or sys.platform == "android":
        return "android"
    if sys.platform == "ios":
        return "ios"
    return "desktop"


def default_api_base(platform: Platform) -> str:
    """Desktop talks to the local backend, every other platform to the cloud."""
    if platform == "desktop":
        return DEFAULT_LOCAL_API_URL
    return DEFAULT_CLOUD_API_URL


def resolve_api_base(config: TransportConfig) -> str:
    """Configured base URL, or the platform default when none is set."""
    if config.base_url:
        return config.base_url
    return default_api_base(config.platform or detect_platform())
