"""Backend health probe.

Single ``GET /health`` with a short timeout; no retries and no user
notifications. Used by the CLI and by callers deciding whether to show an
offline banner.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import httpx

from notesync.core.config import TransportConfig
from notesync.core.errors import NetworkFailure, normalize_failure
from notesync.core.logging import get_logger
from notesync.transport.platform import resolve_api_base

_logger = get_logger("health")

HEALTH_PATH = "/health"
DEFAULT_TIMEOUT_SECONDS = 5.0
DEFAULT_POLL_INTERVAL_SECONDS = 30.0

BACKEND_NOT_RUNNING_MESSAGE = "Backend service is not running. Start it and try again."
UNKNOWN_ERROR_MESSAGE = "Unknown error"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class HealthState:
    status: HealthStatus
    latency_ms: int | None = None
    error: str | None = None
    last_checked: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_healthy(self) -> bool:
        return self.status is HealthStatus.HEALTHY


class HealthProbe:
    """Checks whether the backend answers ``GET /health`` with ``status: ok``.

    Args:
        config: Transport settings used to resolve the base URL.
        timeout_seconds: Per-check timeout.
        http_transport: Optional httpx transport, for tests.
    """

    def __init__(
        self,
        config: TransportConfig | None = None,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = resolve_api_base(config or TransportConfig())
        self.timeout_seconds = timeout_seconds
        self._http_transport = http_transport
        self.last_state: HealthState | None = None

    async def check(self) -> HealthState:
        start = time.monotonic()
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout_seconds),
                transport=self._http_transport,
            ) as client:
                response = await client.get(HEALTH_PATH)
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            state = HealthState(status=HealthStatus.UNHEALTHY, error=self._describe(exc))
        else:
            latency_ms = round((time.monotonic() - start) * 1000)
            ok = isinstance(body, dict) and body.get("status") == "ok"
            state = HealthState(
                status=HealthStatus.HEALTHY if ok else HealthStatus.UNKNOWN,
                latency_ms=latency_ms,
            )

        if self.last_state is None or self.last_state.status is not state.status:
            _logger.info(
                "backend_health_changed",
                status=state.status.value,
                latency_ms=state.latency_ms,
                error=state.error,
            )
        self.last_state = state
        return state

    @staticmethod
    def _describe(exc: Exception) -> str:
        failure = normalize_failure(exc)
        if isinstance(failure, NetworkFailure) and failure.code == "ECONNREFUSED":
            return BACKEND_NOT_RUNNING_MESSAGE
        return failure.message or UNKNOWN_ERROR_MESSAGE

    async def poll(
        self,
        on_state: Callable[[HealthState], Any],
        *,
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_checks: int | None = None,
    ) -> None:
        """Check now and then every ``interval_seconds`` until cancelled."""
        checks = 0
        while max_checks is None or checks < max_checks:
            on_state(await self.check())
            checks += 1
            if max_checks is not None and checks >= max_checks:
                break
            await asyncio.sleep(interval_seconds)
