"""
Storage Layer - codecs, the four scope stores, merging and caching.

The storage hierarchy:
1. Files → Canonical source of truth (split YAML files and legacy .roomodes)
2. MergeResolver → One slug-keyed view by scope/format precedence
3. ModeCache → Last resolution, invalidated on change

All file access for modes should go through these modules.
"""

from modecfg.storage.cache import ModeCache
from modecfg.storage.codecs import LegacyCodec, SplitCodec
from modecfg.storage.resolver import MergedView, MergeResolver, Resolution
from modecfg.storage.stores import (
    PRECEDENCE,
    LegacyFileStore,
    ModeStore,
    SplitDirectoryStore,
    StoreSet,
)

__all__ = [
    "ModeCache",
    "LegacyCodec",
    "SplitCodec",
    "MergedView",
    "MergeResolver",
    "Resolution",
    "PRECEDENCE",
    "LegacyFileStore",
    "ModeStore",
    "SplitDirectoryStore",
    "StoreSet",
]
