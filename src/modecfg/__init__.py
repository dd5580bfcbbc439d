"""
modecfg

Resolution, caching and persistence of custom assistant modes declared in
global and project scopes, in legacy aggregate and split per-file formats.
"""

__version__ = "0.1.0"
__author__ = "modecfg Team"

from modecfg.core.config import settings
from modecfg.core.types import (
    Diagnostic,
    GroupOptions,
    Mode,
    ModeFormat,
    ModeScope,
    ToolGroup,
)
from modecfg.runtime.events import EventChannel, FileChangeEvent
from modecfg.runtime.manager import ModesManager

__all__ = [
    "settings",
    "Diagnostic",
    "GroupOptions",
    "Mode",
    "ModeFormat",
    "ModeScope",
    "ToolGroup",
    "EventChannel",
    "FileChangeEvent",
    "ModesManager",
]
