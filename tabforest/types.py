"""Forest datatypes shared by store, sync, projection, and codec modules."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

CHILD_POLICY_PROMOTE = "promote"
CHILD_POLICY_CLOSE = "close"
CHILD_POLICIES = (CHILD_POLICY_PROMOTE, CHILD_POLICY_CLOSE)


@dataclass
class TabNode:
    """One live host tab as seen by the forest.

    ``title``/``kind``/``selected`` mirror the host and are refreshed on
    every sync; topology fields are owned by ``ForestStore``.
    """

    id: str
    parent_id: str | None = None
    child_ids: list[str] = field(default_factory=list)
    level: int = 0
    collapsed: bool = False
    title: str = ""
    kind: str = ""
    selected: bool = False

    @property
    def has_children(self) -> bool:
        return bool(self.child_ids)


@dataclass(frozen=True)
class TabDescriptor:
    """Closed record for one host tab (``id``, ``title``, ``kind``)."""

    id: str
    title: str = ""
    kind: str = ""

    @classmethod
    def from_mapping(cls, raw: object) -> TabDescriptor | None:
        """Narrow a host record to a descriptor, ignoring unknown fields.

        Returns ``None`` when ``raw`` is not a mapping or has no non-empty
        string ``id``. An empty or missing title falls back to ``kind``.
        """
        if isinstance(raw, TabDescriptor):
            return raw
        if not isinstance(raw, Mapping):
            return None
        tab_id = raw.get("id")
        if not isinstance(tab_id, str) or not tab_id:
            return None
        kind = raw.get("kind", raw.get("type", ""))
        kind = kind if isinstance(kind, str) else ""
        title = raw.get("title")
        title = title if isinstance(title, str) and title else kind
        return cls(id=tab_id, title=title, kind=kind)


@dataclass(frozen=True)
class ProjectedRow:
    """Read-only snapshot of one node in pre-order presentation order."""

    id: str
    parent_id: str | None
    level: int
    title: str
    kind: str
    collapsed: bool
    selected: bool
    has_children: bool
    hidden: bool
