"""ErrorClassifier: maps a failed attempt to an ErrorKind.

Raw failures reach the classifier in many shapes (httpx exceptions, OS
errors, loosely-shaped objects from other transports). ``normalize_failure``
folds all of them into the closed ``RequestFailure`` union first; the rules
then only look at the normalized code, message and HTTP status.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import httpx

from notesync.core.logging import get_logger
from notesync.exceptions import TransportError

from .codes import (
    NETWORK_ERROR_CODES,
    RETRYABLE_HTTP_STATUSES,
    TIMEOUT_ERROR_CODES,
    TIMEOUT_MESSAGE_MARKERS,
    ErrorKind,
)
from .models import (
    ClassifiedError,
    HttpFailure,
    NetworkFailure,
    RequestFailure,
    TimeoutFailure,
    UnknownFailure,
)

_logger = get_logger("errors.classifier")

_FAILURE_TYPES = (NetworkFailure, TimeoutFailure, HttpFailure, UnknownFailure)


def _connect_error_code(message: str) -> str:
    lowered = message.lower()
    if "refused" in lowered:
        return "ECONNREFUSED"
    if "name or service not known" in lowered or "nodename" in lowered or "getaddrinfo" in lowered:
        return "ENOTFOUND"
    if "unreachable" in lowered:
        return "ENETUNREACH"
    return "ERR_NETWORK"


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


def _from_httpx(exc: httpx.HTTPError) -> RequestFailure:
    message = str(exc)
    if isinstance(exc, httpx.HTTPStatusError):
        # Reason phrases such as "Gateway Timeout" must not trip the timeout rule
        return HttpFailure(
            status=exc.response.status_code,
            message=f"Request failed with status code {exc.response.status_code}",
            body=_response_body(exc.response),
        )
    if isinstance(exc, httpx.TimeoutException):
        return TimeoutFailure(code="ECONNABORTED", message=message or "request timed out")
    if isinstance(exc, httpx.ConnectError):
        return NetworkFailure(code=_connect_error_code(message), message=message)
    if isinstance(exc, httpx.TransportError):
        return NetworkFailure(code="ECONNRESET", message=message)
    return UnknownFailure(message=message)


def _field(obj: Any, name: str) -> Any:
    """Read ``name`` from a mapping or an attribute-style object."""
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _from_loose_object(failure: Any) -> RequestFailure:
    code = _field(failure, "code")
    code = code if isinstance(code, str) else None
    message = _field(failure, "message")
    if not isinstance(message, str):
        message = str(failure) if isinstance(failure, BaseException) else ""

    response = _field(failure, "response")
    status = _field(response, "status") if response is not None else None
    body = _field(response, "data") if response is not None else None
    if isinstance(status, int) and not isinstance(status, bool):
        return HttpFailure(status=status, message=message, body=body, code=code)

    if code in TIMEOUT_ERROR_CODES:
        return TimeoutFailure(code=code, message=message)
    if code is not None or _field(failure, "request") is not None:
        # A request went out and nothing came back
        return NetworkFailure(code=code, message=message)
    return UnknownFailure(message=message)


def normalize_failure(failure: Any) -> RequestFailure:
    """Fold any raw failure into the closed ``RequestFailure`` union.

    Never raises; shapes that cannot be read become ``UnknownFailure``.
    """
    try:
        if isinstance(failure, _FAILURE_TYPES):
            return failure
        if isinstance(failure, TransportError):
            return failure.failure
        if isinstance(failure, httpx.HTTPError):
            return _from_httpx(failure)
        if isinstance(failure, (TimeoutError, asyncio.TimeoutError)):
            return TimeoutFailure(code="ECONNABORTED", message=str(failure) or "timed out")
        if isinstance(failure, ConnectionRefusedError):
            return NetworkFailure(code="ECONNREFUSED", message=str(failure))
        if isinstance(failure, ConnectionResetError):
            return NetworkFailure(code="ECONNRESET", message=str(failure))
        return _from_loose_object(failure)
    except Exception:
        _logger.debug("failure_normalization_failed", exc_info=True)
        return UnknownFailure(message=repr(failure))


class ErrorClassifier:
    """Classifies failed attempts into ErrorKinds.

    Rules are applied in order and the first match wins:

    1. known network failure code → ``network``
    2. timeout marker in the message, or an abort-timeout code → ``timeout``
    3. HTTP 408, 429 or any 5xx → ``retryable_http``
    4. HTTP 4xx → ``client_error``
    5. HTTP >= 500 → ``server_error``
    6. anything else → ``unknown``

    The classifier holds no mutable state, so the same failure always
    yields the same kind.
    """

    def __init__(
        self,
        *,
        network_codes: frozenset[str] = NETWORK_ERROR_CODES,
        timeout_codes: frozenset[str] = TIMEOUT_ERROR_CODES,
        retryable_statuses: frozenset[int] = RETRYABLE_HTTP_STATUSES,
    ) -> None:
        self._network_codes = network_codes
        self._timeout_codes = timeout_codes
        self._retryable_statuses = retryable_statuses

    def classify(self, failure: Any) -> ErrorKind:
        """Return the kind of a raw or normalized failure. Never raises."""
        normalized = normalize_failure(failure)

        code: str | None = None
        status: int | None = None
        if isinstance(normalized, (NetworkFailure, TimeoutFailure)):
            code = normalized.code
        elif isinstance(normalized, HttpFailure):
            code = normalized.code
            status = normalized.status

        if code is not None and code in self._network_codes:
            return ErrorKind.NETWORK

        message = normalized.message.lower()
        if (code is not None and code in self._timeout_codes) or any(
            marker in message for marker in TIMEOUT_MESSAGE_MARKERS
        ):
            return ErrorKind.TIMEOUT

        if status is not None:
            if status in self._retryable_statuses or 500 <= status < 600:
                return ErrorKind.RETRYABLE_HTTP
            if 400 <= status < 500:
                return ErrorKind.CLIENT_ERROR
            if status >= 500:
                return ErrorKind.SERVER_ERROR

        if isinstance(normalized, TimeoutFailure):
            return ErrorKind.TIMEOUT
        if isinstance(normalized, NetworkFailure):
            return ErrorKind.NETWORK
        return ErrorKind.UNKNOWN

    def classify_error(self, failure: Any, attempt: int = 1) -> ClassifiedError:
        """Classify and wrap a failure together with its attempt number."""
        normalized = normalize_failure(failure)
        return ClassifiedError(
            kind=self.classify(normalized),
            failure=normalized,
            retry_attempt=attempt,
        )
