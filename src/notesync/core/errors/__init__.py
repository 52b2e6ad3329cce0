"""Error classification and settlement models.

Re-exports all public symbols.
"""

from notesync.core.errors.codes import (
    KIND_MESSAGES,
    NETWORK_ERROR_CODES,
    RETRYABLE_KINDS,
    STATUS_MESSAGES,
    TIMEOUT_ERROR_CODES,
    ErrorKind,
)
from notesync.core.errors.models import (
    ClassifiedError,
    HttpFailure,
    NetworkFailure,
    RequestError,
    RequestFailure,
    RequestOutcome,
    RetryDecision,
    TimeoutFailure,
    UnknownFailure,
)
from notesync.core.errors.classifier import ErrorClassifier, normalize_failure

__all__ = [
    "KIND_MESSAGES",
    "NETWORK_ERROR_CODES",
    "RETRYABLE_KINDS",
    "STATUS_MESSAGES",
    "TIMEOUT_ERROR_CODES",
    "ErrorKind",
    "ClassifiedError",
    "HttpFailure",
    "NetworkFailure",
    "RequestError",
    "RequestFailure",
    "RequestOutcome",
    "RetryDecision",
    "TimeoutFailure",
    "UnknownFailure",
    "ErrorClassifier",
    "normalize_failure",
]
