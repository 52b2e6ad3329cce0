"""Data models for failed requests and their settlement.

This module provides:
- RequestFailure: closed tagged union describing a single failed attempt
  (NetworkFailure, TimeoutFailure, HttpFailure, UnknownFailure)
- ClassifiedError: a failure's kind plus the attempt it happened on
- RetryDecision: whether and when to try again
- RequestError / RequestOutcome: the settled result handed to callers
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .codes import ErrorKind

T = TypeVar("T")


@dataclass(frozen=True)
class NetworkFailure:
    """The request never produced an HTTP response."""

    code: str | None = None
    message: str = ""


@dataclass(frozen=True)
class TimeoutFailure:
    """The request was aborted because a deadline passed."""

    code: str | None = None
    message: str = ""


@dataclass(frozen=True)
class HttpFailure:
    """The server answered with a non-success status.

    ``code`` keeps a transport code reported alongside the status, if any.
    """

    status: int
    message: str = ""
    body: Any = None
    code: str | None = None

    @property
    def server_message(self) -> str | None:
        """Error text the server put in its JSON body, if any."""
        if isinstance(self.body, dict):
            for key in ("error", "message"):
                value = self.body.get(key)
                if isinstance(value, str) and value:
                    return value
        return None


@dataclass(frozen=True)
class UnknownFailure:
    """Anything that fits none of the other shapes."""

    message: str = ""


RequestFailure = NetworkFailure | TimeoutFailure | HttpFailure | UnknownFailure


@dataclass(frozen=True)
class ClassifiedError:
    """A failed attempt with its classification.

    Attributes:
        kind: Semantic category, a pure function of the failure.
        failure: The normalized failure that was classified.
        retry_attempt: 1-indexed attempt on which the failure happened.
    """

    kind: ErrorKind
    failure: RequestFailure
    retry_attempt: int = 1

    @property
    def http_status(self) -> int | None:
        if isinstance(self.failure, HttpFailure):
            return self.failure.status
        return None

    @property
    def is_transient(self) -> bool:
        return self.kind.is_transient


@dataclass(frozen=True)
class RetryDecision:
    """Outcome of consulting the retry policy after a failed attempt."""

    should_retry: bool
    delay_ms: int = 0

    def __post_init__(self) -> None:
        if self.delay_ms < 0:
            raise ValueError(f"delay_ms must be >= 0, got {self.delay_ms}")

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000.0


@dataclass(frozen=True)
class RequestError:
    """Terminal failure of a logical request, ready for presentation.

    Attributes:
        kind: Classification of the last failed attempt.
        user_message: Human-readable text; UI code shows it as is.
        retry_count: Retries performed before giving up (attempts - 1).
        http_status: Status of the last attempt, when the server answered.
        auth_required: True on HTTP 401, for an external session manager.
    """

    kind: ErrorKind
    user_message: str
    retry_count: int = 0
    http_status: int | None = None
    auth_required: bool = False


@dataclass(frozen=True)
class RequestOutcome(Generic[T]):
    """Settled result of a logical request.

    Exactly one of ``data`` / ``error`` is meaningful: ``error`` is None on
    success and set on failure. Build instances with ``ok()`` / ``failed()``.
    """

    success: bool
    data: T | None = None
    error: RequestError | None = None
    attempts: int = field(default=1, compare=False)

    def __post_init__(self) -> None:
        if self.success and self.error is not None:
            raise ValueError("successful outcome cannot carry an error")
        if not self.success and self.error is None:
            raise ValueError("failed outcome requires an error")

    @classmethod
    def ok(cls, data: T, *, attempts: int = 1) -> RequestOutcome[T]:
        return cls(success=True, data=data, attempts=attempts)

    @classmethod
    def failed(cls, error: RequestError, *, attempts: int = 1) -> RequestOutcome[T]:
        return cls(success=False, error=error, attempts=attempts)
