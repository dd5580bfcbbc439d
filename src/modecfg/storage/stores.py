"""
Scope Stores - enumerate, read and write modes for one (scope, format) pair.

Four instances exist per manager:

    project + split   <project>/.roo/modes/<slug>.yaml
    project + legacy  <project>/.roomodes
    global  + split   <global>/modes/<slug>.yaml
    global  + legacy  <global>/.roomodes

All stores share the ModeStore interface and are selected by their
(scope, format) key, never by type. Reads never raise: an inaccessible
root yields an empty listing plus a classified diagnostic. Writes raise
ModeConfigError subclasses to the caller.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

from modecfg.core.config import Settings, get_logger
from modecfg.core.errors import ModeConfigError, ModeParseError, access_error
from modecfg.core.types import (
    Diagnostic,
    DiagnosticKind,
    Mode,
    ModeFormat,
    ModeScope,
    Severity,
)
from modecfg.storage.codecs import LEGACY_KEY, LegacyCodec, SplitCodec

logger = get_logger("storage.stores")

StoreKey = tuple[ModeScope, ModeFormat]


def read_mode_text(path: Path) -> str:
    """
    Read a mode file as UTF-8.

    Raises OSError when the file cannot be read and ModeParseError, with
    the position of the first bad byte, when it is not valid UTF-8.
    """
    data = path.read_bytes()
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        line = data.count(b"\n", 0, e.start) + 1
        column = e.start - (data.rfind(b"\n", 0, e.start) + 1) + 1
        raise ModeParseError(f"invalid UTF-8 ({e.reason})", path=path, line=line, column=column) from e


@dataclass
class StoreListing:
    """Result of enumerating one store."""

    scope: ModeScope
    format: ModeFormat
    modes: dict[str, Mode] = field(default_factory=dict)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def add(self, mode: Mode, path: Path | None = None) -> None:
        """Add a mode; a repeated slug replaces the earlier one."""
        if mode.slug in self.modes:
            self.diagnostics.append(Diagnostic(
                kind=DiagnosticKind.DUPLICATE_SLUG,
                message=f"Duplicate mode '{mode.slug}' in {path}; the later definition wins",
                path=path,
                scope=self.scope,
                format=self.format,
                slug=mode.slug,
            ))
            # re-insert so enumeration order reflects the winning definition
            del self.modes[mode.slug]
        self.modes[mode.slug] = mode

    def report(self, exc: ModeConfigError) -> None:
        diagnostic = Diagnostic.from_error(exc, self.scope, self.format)
        if diagnostic.severity == Severity.INFO:
            logger.debug(diagnostic.message)
        else:
            logger.warning(diagnostic.message)
        self.diagnostics.append(diagnostic)


class ModeStore(ABC):
    """Common interface of the four (scope, format) stores."""

    format: ModeFormat

    def __init__(self, scope: ModeScope, location: Path):
        self.scope = scope
        self.location = location

    @property
    def key(self) -> StoreKey:
        return (self.scope, self.format)

    @property
    def label(self) -> str:
        """Target name used in log lines and error messages."""
        return f"{self.scope.value} {self.format.value} store ({self.location})"

    @abstractmethod
    def enumerate(self) -> StoreListing:
        """Decode every mode in the store. Never raises."""

    def read_one(self, slug: str) -> Mode | None:
        return self.enumerate().modes.get(slug)

    @abstractmethod
    def write(self, mode: Mode) -> Path:
        """Persist a mode; returns the file written."""

    @abstractmethod
    def delete(self, slug: str) -> bool:
        """Remove a mode; returns False when it was not present."""

    @abstractmethod
    def owns(self, path: Path) -> bool:
        """Whether a file-system path belongs to this store."""

    @abstractmethod
    def slug_for(self, path: Path) -> str | None:
        """Slug a changed path refers to, or None for aggregate files."""

    def exists(self) -> bool:
        return self.location.exists()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.scope.value}, {self.location})"


# ============================================
# Split-format directory store
# ============================================

class SplitDirectoryStore(ModeStore):
    """A directory holding one YAML document per mode."""

    format = ModeFormat.SPLIT

    def __init__(
        self,
        scope: ModeScope,
        location: Path,
        codec: SplitCodec,
        extensions: tuple[str, ...] = (".yaml", ".yml"),
        recursive: bool = False,
    ):
        super().__init__(scope, location)
        self.codec = codec
        self.extensions = extensions
        self.recursive = recursive

    @property
    def primary_extension(self) -> str:
        return self.extensions[0]

    def _candidates(self) -> list[Path]:
        """Mode files in deterministic order; the primary extension sorts last so it wins."""
        iterator: Iterator[Path] = (
            self.location.rglob("*") if self.recursive else self.location.iterdir()
        )
        files = [p for p in iterator if p.suffix in self.extensions and p.is_file()]
        return sorted(
            files,
            key=lambda p: (str(p.parent), p.stem, p.suffix == self.primary_extension, p.suffix),
        )

    def enumerate(self) -> StoreListing:
        listing = StoreListing(self.scope, self.format)
        try:
            candidates = self._candidates()
        except OSError as e:
            listing.report(access_error(e, self.location))
            return listing

        for path in candidates:
            try:
                mode = self.codec.decode(read_mode_text(path), path.stem, self.scope, path)
            except OSError as e:
                listing.report(access_error(e, path))
                continue
            except ModeConfigError as e:
                listing.report(e)
                continue

            listing.add(mode, path)

        return listing

    def files_for(self, slug: str) -> list[Path]:
        """Every file defining a slug, in enumeration order; the last one wins."""
        if not self.location.is_dir():
            return []
        return [p for p in self._candidates() if p.stem == slug]

    def path_for(self, slug: str) -> Path:
        """File the slug was loaded from, or the primary-extension path for a new one."""
        existing = self.files_for(slug)
        if existing:
            return existing[-1]
        return self.location / f"{slug}{self.primary_extension}"

    def write(self, mode: Mode) -> Path:
        try:
            path = self.path_for(mode.slug)
        except OSError as e:
            raise access_error(e, self.location) from e
        try:
            self.location.mkdir(parents=True, exist_ok=True)
            path.write_text(self.codec.encode(mode), encoding="utf-8")
        except OSError as e:
            raise access_error(e, path) from e

        logger.info(f"Wrote mode '{mode.slug}' to {path}")
        return path

    def delete(self, slug: str) -> bool:
        """Remove every file defining the slug, so no shadowed copy resurfaces."""
        try:
            paths = self.files_for(slug)
        except OSError as e:
            raise access_error(e, self.location) from e

        removed = False
        for path in paths:
            try:
                path.unlink()
                removed = True
                logger.info(f"Deleted mode '{slug}' at {path}")
            except FileNotFoundError:
                continue
            except OSError as e:
                raise access_error(e, path) from e
        return removed

    def owns(self, path: Path) -> bool:
        if path.suffix not in self.extensions:
            return False
        if self.recursive:
            return self.location in path.parents
        return path.parent == self.location

    def slug_for(self, path: Path) -> str | None:
        return path.stem if self.owns(path) else None


# ============================================
# Legacy aggregate-file store
# ============================================

class LegacyFileStore(ModeStore):
    """The single JSON file holding a ``customModes`` array."""

    format = ModeFormat.LEGACY

    def __init__(self, scope: ModeScope, location: Path, codec: LegacyCodec):
        super().__init__(scope, location)
        self.codec = codec

    def enumerate(self) -> StoreListing:
        listing = StoreListing(self.scope, self.format)
        try:
            decoded = self.codec.decode(read_mode_text(self.location), self.scope, self.location)
        except OSError as e:
            listing.report(access_error(e, self.location))
            return listing
        except ModeConfigError as e:
            listing.report(e)
            return listing

        listing.diagnostics.extend(decoded.diagnostics)
        for mode in decoded.modes:
            listing.add(mode, self.location)
        return listing

    def read_document(self) -> dict[str, Any]:
        """
        Load the raw document for a read-modify-write cycle.

        A missing file is an empty document. A bare top-level array (the
        oldest layout) is upgraded. Anything else that is not a
        ``customModes`` object is refused so user content is never clobbered.
        """
        try:
            text = read_mode_text(self.location)
        except FileNotFoundError:
            return {LEGACY_KEY: []}
        except OSError as e:
            raise access_error(e, self.location) from e

        document = self.codec.parse(text, self.location)
        if isinstance(document, list):
            return {LEGACY_KEY: document}
        if self.codec.entries(document) is None:
            if isinstance(document, dict) and LEGACY_KEY not in document:
                return {**document, LEGACY_KEY: []}
            raise ModeParseError(f"'{LEGACY_KEY}' must be an array", path=self.location)
        return document

    def write_document(self, document: dict[str, Any]) -> None:
        try:
            self.location.parent.mkdir(parents=True, exist_ok=True)
            self.location.write_text(self.codec.encode(document), encoding="utf-8")
        except OSError as e:
            raise access_error(e, self.location) from e

    def write(self, mode: Mode) -> Path:
        """Replace the entry with the same slug in place, or append it."""
        document = self.read_document()
        entries = document[LEGACY_KEY]
        encoded = self.codec.encode_entry(mode)

        for index, entry in enumerate(entries):
            if isinstance(entry, dict) and entry.get("slug") == mode.slug:
                entries[index] = encoded
                break
        else:
            entries.append(encoded)

        self.write_document(document)
        logger.info(f"Wrote mode '{mode.slug}' to {self.location}")
        return self.location

    def delete(self, slug: str) -> bool:
        if not self.location.exists():
            return False

        document = self.read_document()
        entries = document[LEGACY_KEY]
        kept = [e for e in entries if not (isinstance(e, dict) and e.get("slug") == slug)]
        if len(kept) == len(entries):
            return False

        document[LEGACY_KEY] = kept
        self.write_document(document)
        logger.info(f"Deleted mode '{slug}' from {self.location}")
        return True

    def reset(self) -> None:
        """Replace the file with an empty aggregate."""
        self.write_document({LEGACY_KEY: []})

    def owns(self, path: Path) -> bool:
        return path == self.location

    def slug_for(self, path: Path) -> str | None:
        return None


# ============================================
# The four configured stores
# ============================================

PRECEDENCE: tuple[StoreKey, ...] = (
    (ModeScope.PROJECT, ModeFormat.SPLIT),
    (ModeScope.PROJECT, ModeFormat.LEGACY),
    (ModeScope.GLOBAL, ModeFormat.SPLIT),
    (ModeScope.GLOBAL, ModeFormat.LEGACY),
)
"""Store keys from highest to lowest precedence."""


class StoreSet:
    """The four stores of one project, keyed by (scope, format)."""

    def __init__(self, stores: list[ModeStore]):
        self._stores: dict[StoreKey, ModeStore] = {store.key: store for store in stores}
        missing = [key for key in PRECEDENCE if key not in self._stores]
        if missing:
            raise ValueError(f"missing stores for {missing}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "StoreSet":
        split_codec = SplitCodec(settings.schema_url)
        legacy_codec = LegacyCodec()

        def split(scope: ModeScope, location: Path) -> SplitDirectoryStore:
            return SplitDirectoryStore(
                scope,
                location,
                split_codec,
                extensions=settings.split_extensions,
                recursive=settings.recursive_split_dirs,
            )

        return cls([
            split(ModeScope.PROJECT, settings.project_split_dir),
            LegacyFileStore(ModeScope.PROJECT, settings.project_legacy_path, legacy_codec),
            split(ModeScope.GLOBAL, settings.global_split_dir),
            LegacyFileStore(ModeScope.GLOBAL, settings.global_legacy_path, legacy_codec),
        ])

    def get(self, scope: ModeScope, fmt: ModeFormat) -> ModeStore:
        return self._stores[(scope, fmt)]

    def split(self, scope: ModeScope) -> SplitDirectoryStore:
        return cast(SplitDirectoryStore, self._stores[(scope, ModeFormat.SPLIT)])

    def legacy(self, scope: ModeScope) -> LegacyFileStore:
        return cast(LegacyFileStore, self._stores[(scope, ModeFormat.LEGACY)])

    def in_precedence_order(self) -> list[ModeStore]:
        return [self._stores[key] for key in PRECEDENCE]

    def owner_of(self, path: Path) -> ModeStore | None:
        """Store a changed path belongs to, highest precedence first."""
        for store in self.in_precedence_order():
            if store.owns(path):
                return store
        return None

    def __iter__(self) -> Iterator[ModeStore]:
        return iter(self.in_precedence_order())
