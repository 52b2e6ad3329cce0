"""Optimistic mutations over the query cache.

One ``mutate()`` call snapshots the cached value, writes the speculative
value synchronously, sends the request through the pipeline, and then
either invalidates the key so it is refetched from the server or writes
the snapshot back.

Overlapping mutations on the same key each roll back to their own
snapshot. A later-failing mutation can therefore overwrite state an
earlier mutation already confirmed (last write wins). This is a known
race and is left as is.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, TypeVar

from notesync.cache import Cache, CacheKey, DeletableCache, as_key
from notesync.core.errors import RequestOutcome
from notesync.core.logging import get_logger
from notesync.execution.pipeline import RequestFn, RequestPipeline

_logger = get_logger("mutations")

T = TypeVar("T")

SpeculativeUpdate = Callable[[Any], Any]


@dataclass
class MutationContext:
    """State carried from the speculative write to settlement.

    Settled exactly once, by either ``confirm`` or ``rollback``.
    """

    target_key: CacheKey
    previous_snapshot: Any
    speculative_value: Any
    had_snapshot: bool
    settled: bool = False

    def _consume(self) -> None:
        if self.settled:
            raise RuntimeError(f"Mutation on {self.target_key!r} already settled")
        self.settled = True


class MutationCoordinator:
    """Runs optimistic mutations against a cache.

    Args:
        cache: Shared query cache.
        pipeline: Pipeline every mutation request goes through.
    """

    def __init__(self, cache: Cache, pipeline: RequestPipeline | None = None) -> None:
        self.cache = cache
        self.pipeline = pipeline or RequestPipeline()

    def begin(self, key: CacheKey | str, speculative_update: SpeculativeUpdate) -> MutationContext:
        """Snapshot ``key`` and write the speculative value.

        Synchronous, so nothing interleaves between the read and the write.
        """
        target = as_key(key)
        current = self.cache.get(target)
        if isinstance(self.cache, DeletableCache):
            had_snapshot = target in self.cache
        else:
            had_snapshot = current is not None
        previous = copy.deepcopy(current)
        speculative = speculative_update(current)
        self.cache.set(target, speculative)
        return MutationContext(
            target_key=target,
            previous_snapshot=previous,
            speculative_value=speculative,
            had_snapshot=had_snapshot,
        )

    def confirm(self, ctx: MutationContext, invalidate_also: Iterable[CacheKey | str] = ()) -> None:
        """Success path: mark the key (and related keys) for refetch."""
        ctx._consume()
        self.cache.invalidate(ctx.target_key)
        for key in invalidate_also:
            self.cache.invalidate(as_key(key))

    def rollback(self, ctx: MutationContext) -> None:
        """Failure path: restore the snapshot, or drop an entry that did not exist.

        Caches without ``delete`` get the empty snapshot (None) written back.
        """
        ctx._consume()
        if not ctx.had_snapshot and isinstance(self.cache, DeletableCache):
            self.cache.delete(ctx.target_key)
        else:
            self.cache.set(ctx.target_key, ctx.previous_snapshot)

    async def mutate(
        self,
        key: CacheKey | str,
        speculative_update: SpeculativeUpdate,
        request_fn: RequestFn[T],
        *,
        invalidate_also: Iterable[CacheKey | str] = (),
    ) -> RequestOutcome[T]:
        """Apply ``speculative_update`` now, settle when ``request_fn`` does.

        Args:
            key: Cache key the mutation targets.
            speculative_update: Receives the current cached value (None if
                absent) and returns the optimistic value.
            request_fn: One network attempt; retried by the pipeline.
            invalidate_also: Extra keys invalidated on success.

        Returns:
            The pipeline outcome. On failure the cache already holds the
            snapshot again.
        """
        ctx = self.begin(key, speculative_update)
        _logger.debug("mutation_started", key=repr(ctx.target_key))
        try:
            outcome = await self.pipeline.send(request_fn)
        except asyncio.CancelledError:
            self.rollback(ctx)
            _logger.info("mutation_cancelled", key=repr(ctx.target_key))
            raise

        if outcome.success:
            self.confirm(ctx, invalidate_also)
            _logger.debug("mutation_confirmed", key=repr(ctx.target_key))
        else:
            self.rollback(ctx)
            _logger.info(
                "mutation_rolled_back",
                key=repr(ctx.target_key),
                kind=outcome.error.kind.value if outcome.error else None,
            )
        return outcome
