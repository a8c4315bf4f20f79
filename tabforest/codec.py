"""Persistence encoding for the tab forest.

The forest is stored as one JSON string under ``STORAGE_KEY`` in the host
preference store. Only topology and collapsed state are written; titles,
kinds, selection, and levels are re-derived from the host on the next sync.
Decoding is forward compatible (unknown fields ignored, missing fields
defaulted) and never raises.
"""

from __future__ import annotations

import json

from .forest import ForestStore
from .types import TabNode

STORAGE_KEY = "tabforest.tree_structure"
FORMAT_VERSION = 1


def encode_forest(store: ForestStore) -> str:
    """Serialize ``store`` topology and collapsed state to a JSON string."""
    tabs: list[dict[str, object]] = []
    for tab_id in store:
        node = store.get(tab_id)
        assert node is not None
        tabs.append(
            {
                "id": node.id,
                "parentId": node.parent_id,
                "childIds": list(node.child_ids),
                "collapsed": node.collapsed,
            }
        )
    data = {
        "version": FORMAT_VERSION,
        "tabs": tabs,
        "roots": list(store.roots),
        "collapsed": sorted(store.collapsed),
    }
    return json.dumps(data, separators=(",", ":"))


def _string_list(value: object) -> list[str]:
    """Keep only string members of a JSON array; anything else becomes ``[]``."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _decode_tab(raw: object) -> TabNode | None:
    if not isinstance(raw, dict):
        return None
    tab_id = raw.get("id")
    if not isinstance(tab_id, str) or not tab_id:
        return None
    parent_id = raw.get("parentId")
    collapsed = raw.get("collapsed", False)
    return TabNode(
        id=tab_id,
        parent_id=parent_id if isinstance(parent_id, str) and parent_id else None,
        child_ids=_string_list(raw.get("childIds")),
        collapsed=collapsed if isinstance(collapsed, bool) else False,
    )


def decode_forest(blob: str | None) -> ForestStore:
    """Rebuild a store from ``blob`` with placeholder metadata.

    Roots and the collapsed index are restored verbatim; malformed,
    missing, or non-object input yields an empty store.
    """
    if not blob:
        return ForestStore()
    try:
        data = json.loads(blob)
    except (TypeError, ValueError, RecursionError):
        return ForestStore()
    if not isinstance(data, dict):
        return ForestStore()

    raw_tabs = data.get("tabs")
    nodes: list[TabNode] = []
    if isinstance(raw_tabs, list):
        for raw in raw_tabs:
            node = _decode_tab(raw)
            if node is not None:
                nodes.append(node)

    return ForestStore.restore(
        nodes,
        roots=_string_list(data.get("roots")),
        collapsed=_string_list(data.get("collapsed")),
    )
