"""
Cache Layer - the last resolution, bounded by a time-to-live.

invalidate() is the primary coherency mechanism; the TTL only bounds
staleness when a change notification is late or lost.
"""

import time
from collections.abc import Awaitable, Callable

from modecfg.core.config import get_logger
from modecfg.storage.resolver import Resolution

logger = get_logger("storage.cache")

Clock = Callable[[], float]
Loader = Callable[[], Awaitable[Resolution]]


class ModeCache:
    """Holds one Resolution and the monotonic time it was built."""

    def __init__(self, loader: Loader, ttl: float = 10.0, clock: Clock = time.monotonic):
        self._loader = loader
        self.ttl = ttl
        self._clock = clock
        self._entry: Resolution | None = None
        self._stamp = 0.0
        self._generation = 0

    @property
    def is_fresh(self) -> bool:
        return self._entry is not None and self._clock() - self._stamp < self.ttl

    async def get(self) -> Resolution:
        """Return the cached resolution, rebuilding it when missing or expired."""
        entry = self._entry
        if entry is not None and self.is_fresh:
            return entry

        generation = self._generation
        started = self._clock()
        resolution = await self._loader()

        # an invalidation while loading means the result may already be stale
        if generation == self._generation:
            self._entry = resolution
            self._stamp = started
        return resolution

    def invalidate(self) -> None:
        """Drop the cached entry; the next get() rebuilds."""
        self._entry = None
        self._generation += 1
        logger.debug("Mode cache invalidated")
