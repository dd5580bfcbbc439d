"""
Migration - convert a legacy aggregate file into split-format files.

Rules:
- Only runs when the split directory is absent and the legacy file exists,
  which makes a second run a no-op.
- The legacy file is never modified, renamed or deleted.
- Entries with an invalid slug or schema are skipped and reported.
- On failure, files created by this run are removed again so the legacy
  file stays the only source and a later run can retry.
"""

from dataclasses import dataclass, field
from pathlib import Path

from modecfg.core.config import get_logger
from modecfg.core.errors import MigrationError, ModeConfigError
from modecfg.core.types import Mode, ModeFormat, is_valid_slug
from modecfg.runtime.suppression import SuppressionLocks
from modecfg.storage.stores import LegacyFileStore, SplitDirectoryStore

logger = get_logger("runtime.migration")


@dataclass
class MigrationReport:
    """Outcome of one migration attempt."""

    migrated: list[str] = field(default_factory=list)
    skipped: list[tuple[str, str]] = field(default_factory=list)
    """(slug, reason) for entries that were not migrated."""

    performed: bool = False
    """False when there was nothing to migrate."""

    @property
    def count(self) -> int:
        return len(self.migrated)


def needs_migration(legacy: LegacyFileStore, split: SplitDirectoryStore) -> bool:
    return legacy.location.is_file() and not split.location.exists()


def migrate_legacy(
    legacy: LegacyFileStore,
    split: SplitDirectoryStore,
    locks: SuppressionLocks | None = None,
) -> MigrationReport:
    """
    Copy every valid legacy entry of one scope into its split directory.

    Raises MigrationError when the legacy file cannot be read or parsed or
    a split file cannot be written.
    """
    report = MigrationReport()
    if not needs_migration(legacy, split):
        return report

    try:
        entries = legacy.codec.entries(legacy.read_document()) or []
    except ModeConfigError as e:
        raise MigrationError(f"Cannot read {legacy.location}: {e}") from e

    modes: list[Mode] = []
    for entry in entries:
        slug = entry.get("slug") if isinstance(entry, dict) else None
        if not is_valid_slug(slug):
            logger.warning(f"Skipping mode with invalid slug {slug!r} in {legacy.location}")
            report.skipped.append((str(slug), "invalid slug"))
            continue
        try:
            mode = legacy.codec.decode_entry(entry, split.scope, legacy.location)
        except ModeConfigError as e:
            logger.warning(f"Skipping mode '{slug}': {e}")
            report.skipped.append((slug, str(e)))
            continue
        modes.append(mode.with_provenance(split.scope, ModeFormat.SPLIT))

    if not modes:
        logger.info(f"No migratable modes in {legacy.location}")
        return report

    created_dir = False
    written: list[Path] = []
    try:
        split.location.mkdir(parents=True, exist_ok=False)
        created_dir = True
        for mode in modes:
            if locks is not None:
                locks.acquire(mode.slug)
            try:
                written.append(split.write(mode))
            finally:
                if locks is not None:
                    locks.release(mode.slug)
            report.migrated.append(mode.slug)
    except (OSError, ModeConfigError) as e:
        _rollback(written, split.location if created_dir else None)
        raise MigrationError(f"Migration of {legacy.location} failed: {e}") from e

    report.performed = True
    logger.info(
        f"Migrated {report.count} modes from {legacy.location} to {split.location}"
        + (f" ({len(report.skipped)} skipped)" if report.skipped else "")
    )
    return report


def _rollback(written: list[Path], created_dir: Path | None) -> None:
    for path in written:
        path.unlink(missing_ok=True)
    if created_dir is not None:
        try:
            created_dir.rmdir()
        except OSError as e:
            logger.warning(f"Could not remove partially migrated directory {created_dir}: {e}")
