"""Public package surface for tabforest.

Tree-style organization over a flat, host-owned tab list: the forest store,
reconciliation, mutations, view projection, and persistence codec.
``main`` is exported for programmatic CLI invocation.
"""

from __future__ import annotations

from .codec import STORAGE_KEY, decode_forest, encode_forest
from .config import ForestSettings, load_settings, save_settings
from .forest import ForestStore
from .mutations import MutationOps
from .prefs import JsonPreferenceStore, MemoryPreferenceStore, PreferenceStore
from .projection import ViewProjection
from .session import TabForestSession
from .sync import SyncEngine, TabSource, TabSourceError
from .types import CHILD_POLICY_CLOSE, CHILD_POLICY_PROMOTE, ProjectedRow, TabDescriptor, TabNode


def main(*args, **kwargs):
    """Import the CLI on first use so library imports do not load Pygments."""
    from .cli import main as _main

    return _main(*args, **kwargs)


__all__ = [
    "CHILD_POLICY_CLOSE",
    "CHILD_POLICY_PROMOTE",
    "STORAGE_KEY",
    "ForestSettings",
    "ForestStore",
    "JsonPreferenceStore",
    "MemoryPreferenceStore",
    "MutationOps",
    "PreferenceStore",
    "ProjectedRow",
    "SyncEngine",
    "TabDescriptor",
    "TabForestSession",
    "TabNode",
    "TabSource",
    "TabSourceError",
    "ViewProjection",
    "decode_forest",
    "encode_forest",
    "load_settings",
    "main",
    "save_settings",
]
