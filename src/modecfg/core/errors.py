"""
Error taxonomy for mode loading and persistence.

Read paths never raise these out of the manager: they are converted to
Diagnostic entries and aggregated. Write paths raise them to the caller
that submitted the failing operation.
"""

from enum import Enum
from pathlib import Path


class AccessErrorKind(str, Enum):
    """Classes of file-system access failure."""
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    NOT_A_DIRECTORY = "not_a_directory"
    IS_A_DIRECTORY = "is_a_directory"
    MALFORMED_PARENT = "malformed_parent"  # an ancestor of the path is a regular file
    IO_ERROR = "io_error"


_ACCESS_MESSAGES = {
    AccessErrorKind.NOT_FOUND: "not found",
    AccessErrorKind.PERMISSION_DENIED: "permission denied",
    AccessErrorKind.NOT_A_DIRECTORY: "expected a directory but found a file",
    AccessErrorKind.IS_A_DIRECTORY: "expected a file but found a directory",
    AccessErrorKind.MALFORMED_PARENT: "a parent path component is not a directory",
    AccessErrorKind.IO_ERROR: "I/O error",
}


class ModeConfigError(Exception):
    """Base class for all modecfg errors."""


class ModeValidationError(ModeConfigError):
    """A record failed slug or schema validation."""

    def __init__(self, message: str, slug: str | None = None, path: Path | None = None):
        self.slug = slug
        self.path = path
        location = f" in {path}" if path else ""
        subject = f"mode '{slug}'" if slug else "mode"
        super().__init__(f"Invalid {subject}{location}: {message}")


class ModeParseError(ModeConfigError):
    """Structured text (JSON or YAML) could not be parsed."""

    def __init__(
        self,
        message: str,
        path: Path | None = None,
        line: int | None = None,
        column: int | None = None,
    ):
        self.path = path
        self.line = line
        self.column = column
        position = ""
        if line is not None:
            position = f" at line {line}" + (f", column {column}" if column is not None else "")
        source = f" in {path}" if path else ""
        super().__init__(f"Parse error{source}{position}: {message}")


class ModeAccessError(ModeConfigError):
    """A store root or file could not be accessed."""

    def __init__(self, kind: AccessErrorKind, path: Path, detail: str = ""):
        self.kind = kind
        self.path = path
        suffix = f" ({detail})" if detail else ""
        super().__init__(f"Cannot access {path}: {_ACCESS_MESSAGES[kind]}{suffix}")


class ModeWriteError(ModeConfigError):
    """A mutation against a specific store failed."""

    def __init__(self, target: str, slug: str, cause: Exception):
        self.target = target
        self.slug = slug
        self.cause = cause
        super().__init__(f"Failed to write mode '{slug}' to {target}: {cause}")


class ModeNotFoundError(ModeConfigError):
    """No store contains the requested slug."""

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Mode '{slug}' not found in any scope")


class MigrationError(ModeConfigError):
    """Legacy-to-split migration failed; the legacy file stays authoritative."""


def classify_os_error(exc: OSError, path: Path) -> AccessErrorKind:
    """Map an OSError raised for ``path`` to an AccessErrorKind."""
    if isinstance(exc, FileNotFoundError):
        if _has_file_ancestor(path):
            return AccessErrorKind.MALFORMED_PARENT
        return AccessErrorKind.NOT_FOUND
    if isinstance(exc, PermissionError):
        return AccessErrorKind.PERMISSION_DENIED
    if isinstance(exc, NotADirectoryError):
        if path.is_file():
            return AccessErrorKind.NOT_A_DIRECTORY
        return AccessErrorKind.MALFORMED_PARENT
    if isinstance(exc, IsADirectoryError):
        return AccessErrorKind.IS_A_DIRECTORY
    return AccessErrorKind.IO_ERROR


def access_error(exc: OSError, path: Path) -> ModeAccessError:
    """Wrap an OSError in a classified ModeAccessError."""
    return ModeAccessError(classify_os_error(exc, path), path, exc.strerror or str(exc))


def _has_file_ancestor(path: Path) -> bool:
    for parent in path.parents:
        if parent.is_file():
            return True
    return False
