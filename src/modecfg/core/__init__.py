"""
Core module - Configuration, types and the error taxonomy.
"""

from modecfg.core.config import settings, get_logger, setup_logging
from modecfg.core.errors import (
    AccessErrorKind,
    MigrationError,
    ModeAccessError,
    ModeConfigError,
    ModeNotFoundError,
    ModeParseError,
    ModeValidationError,
    ModeWriteError,
)
from modecfg.core.types import (
    Diagnostic,
    DiagnosticKind,
    GroupOptions,
    Mode,
    ModeFormat,
    ModeScope,
    Severity,
    ToolGroup,
)

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
    "AccessErrorKind",
    "MigrationError",
    "ModeAccessError",
    "ModeConfigError",
    "ModeNotFoundError",
    "ModeParseError",
    "ModeValidationError",
    "ModeWriteError",
    "Diagnostic",
    "DiagnosticKind",
    "GroupOptions",
    "Mode",
    "ModeFormat",
    "ModeScope",
    "Severity",
    "ToolGroup",
]
