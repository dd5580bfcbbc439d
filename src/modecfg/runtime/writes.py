"""
Write Serializer - run mutations one at a time, in submission order.

Every mutation of a store goes through one WriteSerializer, so two
read-modify-write cycles on the same aggregate file can never interleave.
A failed operation is reported to its own submitter; the queue moves on.
"""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any

from modecfg.core.config import get_logger

logger = get_logger("runtime.writes")

Operation = Callable[[], Awaitable[Any]]
ChangedPredicate = Callable[[Any], bool]
RefreshCallback = Callable[[], Awaitable[None]]


class WriteSerializer:
    """FIFO queue of async mutations with a single drain task."""

    def __init__(
        self,
        on_settled: Callable[[], None] | None = None,
        on_refresh: RefreshCallback | None = None,
    ):
        """
        Args:
            on_settled: Called synchronously after each operation that may
                have touched disk (cache invalidation), before its submitter
                is resumed. Failed operations count: they may have changed
                some files before raising.
            on_refresh: Awaited once after each successful operation that
                changed something, to let dependents reload.
        """
        self._on_settled = on_settled
        self._on_refresh = on_refresh
        self._queue: deque[tuple[Operation, ChangedPredicate | None, asyncio.Future]] = deque()
        self._drain_task: asyncio.Task | None = None
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def is_draining(self) -> bool:
        return self._drain_task is not None and not self._drain_task.done()

    def enqueue(self, operation: Operation, changed: ChangedPredicate | None = None) -> asyncio.Future:
        """
        Append an operation and start draining if idle.

        ``changed`` inspects a successful result; when it returns False the
        operation left disk untouched and neither callback runs.

        Returns a future resolved with the operation's result, or with its
        exception. Queued operations cannot be cancelled.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._queue.append((operation, changed, future))
        self._idle.clear()

        if not self.is_draining:
            self._drain_task = loop.create_task(self._drain())
        return future

    async def submit(self, operation: Operation, changed: ChangedPredicate | None = None) -> Any:
        """Enqueue and wait for the operation's outcome."""
        return await asyncio.shield(self.enqueue(operation, changed))

    async def join(self) -> None:
        """Wait until every queued operation has finished."""
        await self._idle.wait()

    async def _drain(self) -> None:
        try:
            while self._queue:
                operation, changed, future = self._queue.popleft()
                try:
                    result = await operation()
                except Exception as e:
                    logger.error(f"Queued write failed: {e}")
                    self._settle()
                    if not future.done():
                        future.set_exception(e)
                    continue

                touched = changed is None or changed(result)
                if touched:
                    self._settle()
                if not future.done():
                    future.set_result(result)
                if touched:
                    await self._refresh()
        finally:
            self._idle.set()

    def _settle(self) -> None:
        if self._on_settled:
            self._on_settled()

    async def _refresh(self) -> None:
        if self._on_refresh is None:
            return
        try:
            await self._on_refresh()
        except Exception:
            logger.exception("Refresh callback failed after write")
