"""
ModesManager - the operations surface consumed by the hosting environment.

Wires the four stores, the merge resolver, the cache, the write
serializer, the suppression locks and the change bridge for one project.
Every piece of mutable state is owned by the manager instance, so several
managers (one per project, or one per test) can run side by side.

Operations:
- get_all()                     -> list[Mode]
- upsert(slug, mode)            -> None
- delete(slug)                  -> None
- migrate_legacy_if_needed(scope) -> int
"""

import asyncio
import time
from collections.abc import Awaitable, Callable

from modecfg.core.config import Settings, get_logger, settings as default_settings
from modecfg.core.errors import (
    MigrationError,
    ModeConfigError,
    ModeNotFoundError,
    ModeValidationError,
    ModeWriteError,
)
from modecfg.core.types import Diagnostic, Mode, ModeFormat, ModeScope, is_valid_slug
from modecfg.runtime.events import ChangeBridge, EventChannel, suppression_key
from modecfg.runtime.migration import MigrationReport, migrate_legacy
from modecfg.runtime.suppression import SuppressionLocks
from modecfg.runtime.writes import WriteSerializer
from modecfg.storage.cache import ModeCache
from modecfg.storage.resolver import MergeResolver, Resolution
from modecfg.storage.stores import LegacyFileStore, ModeStore, StoreSet

logger = get_logger("runtime.manager")

RefreshCallback = Callable[[], Awaitable[None]]

DEFAULT_TARGET = (ModeScope.PROJECT, ModeFormat.SPLIT)


class ModesManager:
    """Resolves, caches and persists custom modes for one project."""

    def __init__(
        self,
        settings: Settings | None = None,
        on_update: RefreshCallback | None = None,
        clock: Callable[[], float] = time.monotonic,
        stores: StoreSet | None = None,
    ):
        self.settings = settings or default_settings
        self._on_update = on_update
        self.stores = stores or StoreSet.from_settings(self.settings)
        self.resolver = MergeResolver(self.stores)
        self.cache = ModeCache(
            self._load,
            ttl=self.settings.cache_ttl_seconds,
            clock=clock,
        )
        self.locks = SuppressionLocks(
            grace=self.settings.suppression_grace_seconds,
            max_hold=self.settings.suppression_max_hold_seconds,
            clock=clock,
        )
        self.writes = WriteSerializer(
            on_settled=self.cache.invalidate,
            on_refresh=self._notify,
        )
        self.bridge = ChangeBridge(self.stores, self.cache, self.locks, on_refresh=self._notify)
        self._migration_attempted: set[ModeScope] = set()
        self._session_diagnostics: list[Diagnostic] = []

    # ==========================================
    # Reads
    # ==========================================

    async def _load(self) -> Resolution:
        return await asyncio.to_thread(self.resolver.resolve)

    async def resolve(self) -> Resolution:
        """Merged view plus diagnostics. Never raises for store problems."""
        if self.settings.auto_migrate:
            await self.migrate_legacy_if_needed(ModeScope.PROJECT)
        return await self.cache.get()

    async def get_all(self) -> list[Mode]:
        """Every resolved mode, one per slug, highest precedence first."""
        return (await self.resolve()).view.modes()

    async def get(self, slug: str) -> Mode | None:
        return (await self.resolve()).view.get(slug)

    async def diagnostics(self) -> list[Diagnostic]:
        """Problems from the latest resolution and from this session's migrations."""
        resolution = await self.resolve()
        return [*self._session_diagnostics, *resolution.diagnostics]

    # ==========================================
    # Writes
    # ==========================================

    async def upsert(self, slug: str, mode: Mode) -> None:
        """
        Create or update a mode.

        The target store is the mode's declared scope/format when given,
        otherwise the store the existing mode came from, otherwise the
        project split directory.
        """
        if not is_valid_slug(slug):
            raise ModeValidationError("slug may only contain letters, numbers and hyphens", slug=slug)

        existing = await self.get(slug)
        scope, fmt = self._target_for(mode, existing)
        store = self.stores.get(scope, fmt)
        record = mode.model_copy(update={"slug": slug, "scope": scope, "format": fmt})

        await self.writes.submit(lambda: self._locked_write(store, record))

    def _target_for(self, mode: Mode, existing: Mode | None) -> tuple[ModeScope, ModeFormat]:
        if mode.scope is not None and mode.format is not None:
            return (mode.scope, mode.format)

        if existing is not None and existing.scope is not None and existing.format is not None:
            if mode.scope in (None, existing.scope) and mode.format in (None, existing.format):
                return (existing.scope, existing.format)

        return (mode.scope or DEFAULT_TARGET[0], mode.format or DEFAULT_TARGET[1])

    async def _locked_write(self, store: ModeStore, mode: Mode) -> None:
        keys = self._lock_keys(store, mode.slug)
        for key in keys:
            self.locks.acquire(key)
        try:
            await asyncio.to_thread(store.write, mode)
        except ModeConfigError as e:
            logger.error(f"Failed to write mode '{mode.slug}' to {store.label}: {e}")
            raise ModeWriteError(store.label, mode.slug, e) from e
        finally:
            for key in keys:
                self.locks.release(key)

    async def delete(self, slug: str) -> None:
        """Remove a mode from every store that defines it."""
        holders = await asyncio.to_thread(self._stores_holding, slug)
        if not holders:
            raise ModeNotFoundError(slug)

        async def remove() -> None:
            for store in holders:
                keys = self._lock_keys(store, slug)
                for key in keys:
                    self.locks.acquire(key)
                try:
                    await asyncio.to_thread(store.delete, slug)
                except ModeConfigError as e:
                    logger.error(f"Failed to delete mode '{slug}' from {store.label}: {e}")
                    raise ModeWriteError(store.label, slug, e) from e
                finally:
                    for key in keys:
                        self.locks.release(key)

        await self.writes.submit(remove)

    def _stores_holding(self, slug: str) -> list[ModeStore]:
        return [store for store in self.stores if store.read_one(slug) is not None]

    async def reset(self, scope: ModeScope = ModeScope.GLOBAL) -> None:
        """Empty the legacy aggregate file of one scope."""
        store = self.stores.legacy(scope)

        async def clear() -> None:
            key = suppression_key(store.location)
            self.locks.acquire(key)
            try:
                await asyncio.to_thread(store.reset)
            except ModeConfigError as e:
                raise ModeWriteError(store.label, "*", e) from e
            finally:
                self.locks.release(key)

        await self.writes.submit(clear)

    @staticmethod
    def _lock_keys(store: ModeStore, slug: str) -> list[str]:
        keys = [slug]
        if isinstance(store, LegacyFileStore):
            keys.append(suppression_key(store.location))
        return keys

    # ==========================================
    # Migration
    # ==========================================

    async def migrate_legacy_if_needed(self, scope: ModeScope = ModeScope.PROJECT) -> int:
        """
        Migrate a scope's legacy file to split files, at most once per manager.

        Returns the number of migrated modes. Failures are logged and
        recorded as diagnostics; reads then keep using the legacy file.
        """
        if scope in self._migration_attempted:
            return 0
        self._migration_attempted.add(scope)

        legacy = self.stores.legacy(scope)
        split = self.stores.split(scope)

        async def run() -> MigrationReport:
            return await asyncio.to_thread(migrate_legacy, legacy, split, self.locks)

        try:
            report = await self.writes.submit(run, changed=lambda r: r.performed)
            return report.count
        except MigrationError as e:
            logger.warning(f"{e}; continuing with {legacy.location}")
            self._session_diagnostics.append(Diagnostic.from_error(e, scope, ModeFormat.LEGACY))
            return 0

    # ==========================================
    # Change notifications
    # ==========================================

    def attach(self, channel: EventChannel) -> None:
        """Start reacting to file events published on the channel."""
        self.bridge.attach(channel)

    async def close(self) -> None:
        """Stop listening and wait for queued writes to finish."""
        self.bridge.detach()
        await self.writes.join()

    async def _notify(self) -> None:
        if self._on_update is not None:
            await self._on_update()
