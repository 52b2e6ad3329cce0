"""Error kinds, network codes and user-facing message templates.

Error Kind Taxonomy
===================

Every failed request is classified into exactly one kind. The kind alone
drives the retry decision; the HTTP status (when present) only refines the
message shown to the user.

    | Kind           | Retried | Typical source                            |
    |----------------|---------|-------------------------------------------|
    | network        | Yes     | connection refused/reset, DNS failure     |
    | timeout        | Yes     | read/connect timeout, aborted request     |
    | retryable_http | Yes     | HTTP 408, 429, 5xx                        |
    | client_error   | No      | HTTP 4xx other than 408/429               |
    | server_error   | No      | HTTP >= 500 not matched as retryable      |
    | unknown        | No      | anything the classifier does not recognize |

Usage
-----

Example::

    kind = ErrorClassifier().classify(failure)
    if kind in RETRYABLE_KINDS:
        ...
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Semantic category of a failed request."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    RETRYABLE_HTTP = "retryable_http"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    UNKNOWN = "unknown"

    @property
    def is_transient(self) -> bool:
        """True for kinds that a later attempt may plausibly fix."""
        return self in RETRYABLE_KINDS


RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset({
    ErrorKind.NETWORK,
    ErrorKind.TIMEOUT,
    ErrorKind.RETRYABLE_HTTP,
})
"""Kinds the retry policy is allowed to retry."""

RETRYABLE_HTTP_STATUSES: frozenset[int] = frozenset({408, 429})
"""Non-5xx statuses that are retried (every 5xx is retried as well)."""

NETWORK_ERROR_CODES: frozenset[str] = frozenset({
    "ECONNREFUSED",
    "ECONNRESET",
    "ENOTFOUND",
    "EAI_AGAIN",
    "ETIMEDOUT",
    "EPIPE",
    "ENETUNREACH",
    "EHOSTUNREACH",
    "ERR_NETWORK",
})
"""Transport codes meaning the request never produced an HTTP response."""

TIMEOUT_ERROR_CODES: frozenset[str] = frozenset({
    "ECONNABORTED",
    "ESOCKETTIMEDOUT",
})
"""Codes a transport uses when it aborted a request on its own deadline."""

TIMEOUT_MESSAGE_MARKERS: tuple[str, ...] = ("timeout", "timed out")
"""Lowercase substrings that mark a failure message as a timeout."""

UNAUTHORIZED_STATUS = 401


# =============================================================================
# User-facing messages
# =============================================================================

STATUS_MESSAGES: dict[int, str] = {
    400: "The request was invalid. Please check your input.",
    401: "You are not signed in. Please sign in again.",
    403: "You do not have permission to access this resource.",
    404: "The requested resource does not exist.",
    408: "The server took too long to receive the request. Please try again later.",
    409: "This item was changed elsewhere. Refresh and try again.",
    413: "The content is too large to save.",
    422: "The server could not process this content.",
    429: "Too many requests. Please try again later.",
    500: "The server hit an internal error. Please try again later.",
    502: "The service is temporarily unavailable. Please try again later.",
    503: "The service is temporarily unavailable. Please try again later.",
    504: "The server timed out. Please try again later.",
}
"""Distinct templates per HTTP status code."""

KIND_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NETWORK: "Network connection failed. Please check your network settings.",
    ErrorKind.TIMEOUT: "The request timed out. Please try again later.",
    ErrorKind.RETRYABLE_HTTP: "The service is temporarily unavailable. Please try again later.",
    ErrorKind.CLIENT_ERROR: "The request could not be completed.",
    ErrorKind.SERVER_ERROR: "The server hit an error. Please try again later.",
    ErrorKind.UNKNOWN: "An unknown error occurred.",
}
"""Fallback per kind when no status-specific template applies."""


def status_fallback_message(status: int) -> str:
    """Generic message for a status without its own template."""
    return f"Request failed ({status})."
