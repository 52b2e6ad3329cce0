"""Retry policy: exponential backoff with symmetric jitter.

Decides, for one failed attempt of a logical request, whether another
attempt should be made and how long to wait first.

Example usage:
    policy = RetryPolicy(RetryConfig(max_attempts=3))
    decision = policy.next_delay(attempt, classified)
    if decision.should_retry:
        await asyncio.sleep(decision.delay_seconds)
"""

from __future__ import annotations

import random

from notesync.core.config import RetryConfig
from notesync.core.errors import RETRYABLE_KINDS, ClassifiedError, ErrorKind, RetryDecision


def backoff_base_ms(attempt: int, config: RetryConfig) -> float:
    """Un-jittered delay after ``attempt`` (1-indexed), capped at max_delay_ms."""
    exponent = max(attempt - 1, 0)
    try:
        base = config.initial_delay_ms * (config.backoff_multiplier ** exponent)
    except OverflowError:
        return float(config.max_delay_ms)
    return min(base, float(config.max_delay_ms))


def jittered_delay_ms(base: float, jitter_fraction: float, rng: random.Random) -> int:
    """Draw uniformly from ``base ± base * jitter_fraction``, clamped to >= 0."""
    spread = base * jitter_fraction
    return max(0, round(base + rng.uniform(-spread, spread)))


class RetryPolicy:
    """Stateless retry decision maker.

    Only ``network``, ``timeout`` and ``retryable_http`` failures are ever
    retried, and never once ``attempt`` has reached ``max_attempts``.

    Args:
        config: Backoff parameters. Defaults to RetryConfig().
        rng: Random source for jitter, injectable for deterministic tests.
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or RetryConfig()
        self._rng = rng or random.Random()

    def is_retryable(self, kind: ErrorKind) -> bool:
        return kind in RETRYABLE_KINDS

    def next_delay(
        self,
        attempt: int,
        classification: ClassifiedError,
        config: RetryConfig | None = None,
    ) -> RetryDecision:
        """Decide whether to retry after a failed ``attempt``.

        Args:
            attempt: Number of attempts made so far (1-indexed).
            classification: The classified failure of that attempt.
            config: Overrides the policy's own config for this call.

        Returns:
            RetryDecision; ``delay_ms`` is 0 when not retrying.
        """
        cfg = config or self.config
        if attempt >= cfg.max_attempts or not self.is_retryable(classification.kind):
            return RetryDecision(should_retry=False, delay_ms=0)

        base = backoff_base_ms(attempt, cfg)
        return RetryDecision(
            should_retry=True,
            delay_ms=jittered_delay_ms(base, cfg.jitter_fraction, self._rng),
        )


__all__ = ["RetryPolicy", "backoff_base_ms", "jittered_delay_ms"]
