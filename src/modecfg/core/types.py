"""
Core type definitions for modecfg.

These types represent the mode record and its provenance:
- Mode: a named assistant role with instructions and capability groups
- GroupOptions: per-group restrictions (file filter, description)
- Diagnostic: a non-fatal problem found while loading a store
"""

import re
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from modecfg.core.errors import (
    AccessErrorKind,
    ModeAccessError,
    ModeConfigError,
    ModeParseError,
    ModeValidationError,
)


SLUG_PATTERN = re.compile(r"^[A-Za-z0-9-]+$")


def is_valid_slug(slug: Any) -> bool:
    """Slugs are non-empty strings of ASCII letters, digits and hyphens."""
    return isinstance(slug, str) and bool(SLUG_PATTERN.match(slug))


# ============================================
# Enums
# ============================================

class ModeScope(str, Enum):
    """Storage root a mode was loaded from."""
    GLOBAL = "global"
    PROJECT = "project"


class ModeFormat(str, Enum):
    """On-disk shape a mode was loaded from."""
    LEGACY = "legacy"  # single aggregate JSON file
    SPLIT = "split"    # one YAML file per mode


class ToolGroup(str, Enum):
    """Capability groups a mode may be granted."""
    READ = "read"
    EDIT = "edit"
    BROWSER = "browser"
    COMMAND = "command"
    MCP = "mcp"
    MODES = "modes"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class DiagnosticKind(str, Enum):
    """What went wrong while loading or migrating."""
    VALIDATION = "validation"
    PARSE = "parse"
    MALFORMED_SHAPE = "malformed_shape"
    DUPLICATE_SLUG = "duplicate_slug"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    NOT_A_DIRECTORY = "not_a_directory"
    IS_A_DIRECTORY = "is_a_directory"
    MALFORMED_PARENT = "malformed_parent"
    IO_ERROR = "io_error"
    MIGRATION = "migration"


# ============================================
# Groups
# ============================================

class GroupOptions(BaseModel):
    """Restrictions attached to a capability group."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    file_regex: str | None = Field(default=None, alias="fileRegex")
    """Only files whose path matches this pattern may be touched."""

    description: str | None = None
    """Human-readable summary of the restriction."""

    def is_empty(self) -> bool:
        return self.file_regex is None and self.description is None

    def to_data(self) -> dict[str, str]:
        """Serialized form using the on-disk key names."""
        return self.model_dump(by_alias=True, exclude_none=True)


def normalize_groups(value: Any) -> dict[Any, Any]:
    """
    Reduce either accepted ``groups`` shape to a name -> options mapping.

    Accepts a mapping (``{"read": None, "edit": {...}}``) or the legacy list
    of entries, where each entry is a bare group name or a
    ``[name, options]`` pair. Duplicate group names are rejected.
    """
    if value is None:
        return {}

    if isinstance(value, Mapping):
        return dict(value)

    if not isinstance(value, (list, tuple)):
        raise ValueError("groups must be a mapping or a list of entries")

    groups: dict[Any, Any] = {}
    for entry in value:
        if isinstance(entry, str):
            name, options = entry, None
        elif isinstance(entry, (list, tuple)) and len(entry) == 2:
            name, options = entry
        else:
            raise ValueError(f"invalid group entry: {entry!r}")

        if name in groups:
            raise ValueError(f"duplicate group '{name}'")
        groups[name] = options

    return groups


# ============================================
# Modes
# ============================================

class ModeBody(BaseModel):
    """The editable part of a mode, shared by both on-disk formats."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(min_length=1)
    """Display name."""

    role_definition: str = Field(alias="roleDefinition", min_length=1)
    """What the assistant is while this mode is active."""

    custom_instructions: str | None = Field(default=None, alias="customInstructions")
    """Extra instructions appended to the prompt."""

    groups: dict[ToolGroup, GroupOptions | None] = Field(default_factory=dict)
    """Granted capability groups with optional restrictions."""

    @field_validator("name", "role_definition")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("groups", mode="before")
    @classmethod
    def _normalize_groups(cls, value: Any) -> dict[Any, Any]:
        return normalize_groups(value)

    @field_validator("groups")
    @classmethod
    def _drop_empty_options(
        cls, value: dict[ToolGroup, GroupOptions | None]
    ) -> dict[ToolGroup, GroupOptions | None]:
        return {
            group: (None if options is None or options.is_empty() else options)
            for group, options in value.items()
        }


class Mode(ModeBody):
    """A mode together with its identity and provenance."""

    slug: str
    """Stable identifier; filename stem for split files."""

    scope: ModeScope | None = None
    """Storage root the mode came from (None until loaded or targeted)."""

    format: ModeFormat | None = None
    """On-disk shape the mode came from (None until loaded or targeted)."""

    @field_validator("slug")
    @classmethod
    def _valid_slug(cls, value: str) -> str:
        if not is_valid_slug(value):
            raise ValueError("slug may only contain letters, numbers and hyphens")
        return value

    @property
    def provenance(self) -> tuple[ModeScope | None, ModeFormat | None]:
        return (self.scope, self.format)

    def with_provenance(self, scope: ModeScope, fmt: ModeFormat) -> "Mode":
        return self.model_copy(update={"scope": scope, "format": fmt})

    def content(self) -> dict[str, Any]:
        """Logical content, independent of where the mode is stored."""
        return self.model_dump(exclude={"scope", "format"})

    def group_names(self) -> list[str]:
        return [group.value for group in self.groups]


# ============================================
# Diagnostics
# ============================================

class Diagnostic(BaseModel):
    """A non-fatal problem surfaced while loading, writing or migrating."""

    kind: DiagnosticKind
    severity: Severity = Severity.WARNING
    message: str
    path: Path | None = None
    scope: ModeScope | None = None
    format: ModeFormat | None = None
    slug: str | None = None
    line: int | None = None
    column: int | None = None

    @classmethod
    def from_error(
        cls,
        exc: ModeConfigError,
        scope: ModeScope | None = None,
        fmt: ModeFormat | None = None,
    ) -> "Diagnostic":
        """Classify an error raised by a codec or store."""
        if isinstance(exc, ModeParseError):
            return cls(
                kind=DiagnosticKind.PARSE,
                message=str(exc),
                path=exc.path,
                scope=scope,
                format=fmt,
                line=exc.line,
                column=exc.column,
            )
        if isinstance(exc, ModeValidationError):
            return cls(
                kind=DiagnosticKind.VALIDATION,
                message=str(exc),
                path=exc.path,
                scope=scope,
                format=fmt,
                slug=exc.slug,
            )
        if isinstance(exc, ModeAccessError):
            return cls(
                kind=DiagnosticKind(exc.kind.value),
                # an absent root is the normal state of an unused store
                severity=Severity.INFO if exc.kind == AccessErrorKind.NOT_FOUND else Severity.WARNING,
                message=str(exc),
                path=exc.path,
                scope=scope,
                format=fmt,
            )
        return cls(
            kind=DiagnosticKind.MIGRATION,
            severity=Severity.ERROR,
            message=str(exc),
            scope=scope,
            format=fmt,
        )

    def describe(self) -> str:
        origin = f"[{self.scope.value}/{self.format.value}] " if self.scope and self.format else ""
        return f"{origin}{self.kind.value}: {self.message}"
