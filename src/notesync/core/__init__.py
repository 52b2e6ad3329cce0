"""Core configuration, error taxonomy and logging."""

from notesync.core.config import RetryConfig, SyncConfig
from notesync.core.errors import ClassifiedError, ErrorClassifier, ErrorKind, RequestOutcome

__all__ = [
    "ClassifiedError",
    "ErrorClassifier",
    "ErrorKind",
    "RequestOutcome",
    "RetryConfig",
    "SyncConfig",
]
