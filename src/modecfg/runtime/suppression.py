"""
Self-Suppression Locks - keep a write from reacting to its own file events.

Each lock is just an expiry timestamp in a map. Nothing is scheduled:
expired entries are swept whenever the map is consulted, which keeps the
behavior deterministic under an injected clock.

Writes run in worker threads while events are checked on the event loop,
so every access to the map holds a thread lock.
"""

import threading
import time
from collections.abc import Callable

from modecfg.core.config import get_logger

logger = get_logger("runtime.suppression")


class SuppressionLocks:
    """Per-key locks with a bounded lifetime."""

    def __init__(
        self,
        grace: float = 1.0,
        max_hold: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.grace = grace
        self.max_hold = max_hold
        self._clock = clock
        self._lock = threading.Lock()
        self._expiry: dict[str, float] = {}

    def acquire(self, key: str) -> None:
        """Lock a key before its write starts. Auto-clears after max_hold."""
        with self._lock:
            self._expiry[key] = self._clock() + self.max_hold
        logger.debug(f"Suppressing file events for '{key}'")

    def release(self, key: str) -> None:
        """Keep suppressing for the grace period, then let events through."""
        with self._lock:
            if key in self._expiry:
                self._expiry[key] = self._clock() + self.grace

    def clear(self, key: str) -> None:
        with self._lock:
            self._expiry.pop(key, None)

    def is_suppressed(self, key: str | None) -> bool:
        if key is None:
            return False
        with self._lock:
            self._sweep_locked()
            return key in self._expiry

    def active(self) -> list[str]:
        with self._lock:
            self._sweep_locked()
            return sorted(self._expiry)

    def _sweep_locked(self) -> None:
        now = self._clock()
        for key in [k for k, expiry in self._expiry.items() if expiry <= now]:
            del self._expiry[key]
