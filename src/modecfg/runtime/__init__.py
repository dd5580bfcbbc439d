"""
Runtime - write coordination, change notifications and migration.
"""

from modecfg.runtime.events import ChangeBridge, EventChannel, FileChangeEvent
from modecfg.runtime.manager import ModesManager
from modecfg.runtime.migration import MigrationReport, migrate_legacy
from modecfg.runtime.suppression import SuppressionLocks
from modecfg.runtime.writes import WriteSerializer

__all__ = [
    "ChangeBridge",
    "EventChannel",
    "FileChangeEvent",
    "ModesManager",
    "MigrationReport",
    "migrate_legacy",
    "SuppressionLocks",
    "WriteSerializer",
]
