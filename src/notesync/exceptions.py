"""Exception hierarchy for notesync.

All library exceptions inherit from NoteSyncError so callers can catch the
broad base or a narrow subclass.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from notesync.core.errors.models import RequestFailure


class NoteSyncError(Exception):
    """Base exception for all notesync errors."""


class TransportError(NoteSyncError):
    """A single request attempt failed.

    Carries the normalized failure so the classifier never has to sniff
    optional attributes on transport-specific exception types.
    """

    def __init__(self, failure: RequestFailure) -> None:
        self.failure = failure
        super().__init__(failure.message or type(failure).__name__)


class ConnectionClosedError(NoteSyncError):
    """Raised when connecting an event stream that was already closed."""


class ConfigError(NoteSyncError):
    """Raised when a configuration file cannot be loaded or validated."""
