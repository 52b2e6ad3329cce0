"""Request pipeline: runs one logical request through the retry loop.

Each call to ``request_fn`` is exactly one network attempt. Failures are
classified, the retry policy is consulted, and the loop either sleeps and
tries again or settles with a presentation-ready ``RequestError``.

Example usage:
    pipeline = RequestPipeline(RetryPolicy(), notifications=manager)
    outcome = await pipeline.send(lambda: transport.get("/api/notes"))
    if outcome.success:
        render(outcome.data)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from notesync.core.errors import (
    ClassifiedError,
    ErrorClassifier,
    ErrorKind,
    HttpFailure,
    RequestError,
    RequestOutcome,
    RetryDecision,
)
from notesync.core.errors.codes import (
    KIND_MESSAGES,
    STATUS_MESSAGES,
    UNAUTHORIZED_STATUS,
    status_fallback_message,
)
from notesync.core.logging import SyncContext, get_current_context, get_logger, with_context
from notesync.execution.retry_policy import RetryPolicy
from notesync.notifications.base import (
    NotificationContext,
    NotificationEvent,
    NotificationManager,
)

_logger = get_logger("pipeline")

T = TypeVar("T")

RequestFn = Callable[[], Awaitable[T]]
RetryHook = Callable[[ClassifiedError, RetryDecision], Any]
AuthRequiredHook = Callable[[RequestError], Any]
SleepFn = Callable[[float], Awaitable[None]]


def build_user_message(classified: ClassifiedError) -> str:
    """Human-readable message for a terminal failure.

    Text supplied by the server in the response body wins, then the
    template for the HTTP status, then the generic text for the kind.
    """
    failure = classified.failure
    if isinstance(failure, HttpFailure):
        server_message = failure.server_message
        if server_message:
            return server_message
        return STATUS_MESSAGES.get(failure.status) or status_fallback_message(failure.status)
    return KIND_MESSAGES[classified.kind]


async def _maybe_await(result: Any) -> None:
    if asyncio.iscoroutine(result):
        await result


class RequestPipeline:
    """Wraps outbound calls with classification, retries and notification.

    Args:
        policy: Retry policy; its config bounds the number of attempts.
        classifier: Failure classifier. Defaults to ErrorClassifier().
        notifications: Receives exactly one notification per terminal failure.
        on_auth_required: Called with the RequestError on HTTP 401 so an
            external session manager can re-authenticate.
        on_retry: Called before each backoff sleep.
        sleep: Awaitable sleep in seconds, injectable for tests.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        classifier: ErrorClassifier | None = None,
        notifications: NotificationManager | None = None,
        on_auth_required: AuthRequiredHook | None = None,
        on_retry: RetryHook | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._classifier = classifier or ErrorClassifier()
        self._notifications = notifications
        self._on_auth_required = on_auth_required
        self._on_retry = on_retry
        self._sleep = sleep

    async def send(self, request_fn: RequestFn[T]) -> RequestOutcome[T]:
        """Run ``request_fn`` until it succeeds or the policy gives up.

        Never raises for request failures; the outcome carries them.
        Cancellation of the calling task propagates unchanged.
        """
        ctx = (get_current_context() or SyncContext()).for_request()
        with with_context(ctx):
            return await self._run(request_fn)

    async def _run(self, request_fn: RequestFn[T]) -> RequestOutcome[T]:
        attempt = 0
        while True:
            attempt += 1
            try:
                data = await request_fn()
            except Exception as exc:
                classified = self._classifier.classify_error(exc, attempt)
                decision = self.policy.next_delay(attempt, classified)
                if not decision.should_retry:
                    return await self._settle_failure(classified, attempt)

                _logger.info(
                    "request_retrying",
                    attempt=attempt,
                    kind=classified.kind.value,
                    http_status=classified.http_status,
                    delay_ms=decision.delay_ms,
                )
                if self._on_retry is not None:
                    await _maybe_await(self._on_retry(classified, decision))
                await self._sleep(decision.delay_seconds)
                continue

            if attempt > 1:
                _logger.info("request_recovered", attempts=attempt)
            return RequestOutcome.ok(data, attempts=attempt)

    async def _settle_failure(
        self,
        classified: ClassifiedError,
        attempt: int,
    ) -> RequestOutcome[Any]:
        auth_required = classified.http_status == UNAUTHORIZED_STATUS
        error = RequestError(
            kind=classified.kind,
            user_message=build_user_message(classified),
            retry_count=attempt - 1,
            http_status=classified.http_status,
            auth_required=auth_required,
        )

        log = _logger.warning if classified.kind is ErrorKind.UNKNOWN else _logger.info
        log(
            "request_failed",
            attempts=attempt,
            kind=error.kind.value,
            http_status=error.http_status,
            retry_count=error.retry_count,
            auth_required=auth_required,
        )

        if auth_required and self._on_auth_required is not None:
            try:
                await _maybe_await(self._on_auth_required(error))
            except Exception:
                _logger.warning("auth_required_hook_failed", exc_info=True)

        if self._notifications is not None:
            event = (
                NotificationEvent.AUTH_REQUIRED if auth_required
                else NotificationEvent.REQUEST_FAILED
            )
            await self._notifications.notify(NotificationContext.from_error(error, event))

        return RequestOutcome.failed(error, attempts=attempt)


__all__ = ["RequestPipeline", "build_user_message"]
