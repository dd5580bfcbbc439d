"""
Change-Notification Bridge.

The hosting environment owns the real file watcher. It publishes
FileChangeEvent messages on an EventChannel; the ChangeBridge subscribes,
maps each event to the store and slug it concerns, and invalidates the
cache unless the change is the echo of one of our own writes.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from modecfg.core.config import get_logger
from modecfg.runtime.suppression import SuppressionLocks
from modecfg.storage.cache import ModeCache
from modecfg.storage.stores import StoreSet

logger = get_logger("runtime.events")

ChangeKind = Literal["created", "changed", "deleted"]


@dataclass(frozen=True)
class FileChangeEvent:
    """A file add/change/remove notification from the host."""

    kind: ChangeKind
    path: Path

    @classmethod
    def of(cls, kind: ChangeKind, path: Path | str) -> "FileChangeEvent":
        return cls(kind=kind, path=Path(path))


Handler = Callable[[FileChangeEvent], Awaitable[None]]


class EventChannel:
    """In-process publish/subscribe channel for file change events."""

    def __init__(self) -> None:
        self._handlers: list[Handler] = []

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        """Register a handler; returns a function that unsubscribes it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    async def publish(self, event: FileChangeEvent) -> None:
        """Deliver an event to every subscriber, in subscription order."""
        for handler in list(self._handlers):
            try:
                await handler(event)
            except Exception:
                logger.exception(f"Handler failed for {event.kind} {event.path}")


def suppression_key(path: Path) -> str:
    """Lock key for an aggregate file, which has no single slug."""
    return f"file:{path}"


class ChangeBridge:
    """Turns external file events into cache invalidation and refresh."""

    def __init__(
        self,
        stores: StoreSet,
        cache: ModeCache,
        locks: SuppressionLocks,
        on_refresh: Callable[[], Awaitable[None]] | None = None,
    ):
        self.stores = stores
        self.cache = cache
        self.locks = locks
        self._on_refresh = on_refresh
        self._unsubscribe: Callable[[], None] | None = None

    def attach(self, channel: EventChannel) -> None:
        self.detach()
        self._unsubscribe = channel.subscribe(self.handle)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def handle(self, event: FileChangeEvent) -> bool:
        """
        React to one event.

        Returns True when the cache was invalidated, False when the event
        was unrelated or suppressed.
        """
        store = self.stores.owner_of(event.path)
        if store is None:
            return False

        slug = store.slug_for(event.path)
        key = slug if slug is not None else suppression_key(event.path)
        if self.locks.is_suppressed(key):
            logger.debug(f"Ignoring {event.kind} of {event.path}: own write in progress")
            return False

        logger.info(f"External {event.kind} of {event.path}; reloading modes")
        self.cache.invalidate()
        if self._on_refresh is not None:
            await self._on_refresh()
        return True
