"""Read-only presentation order for the forest.

The renderer consumes ``ViewProjection.sequence`` and ``is_visible`` and
never looks at ``ForestStore`` directly.
"""

from __future__ import annotations

from .forest import ForestStore
from .types import ProjectedRow, TabNode


def _row(node: TabNode, hidden: bool) -> ProjectedRow:
    return ProjectedRow(
        id=node.id,
        parent_id=node.parent_id,
        level=node.level,
        title=node.title,
        kind=node.kind,
        collapsed=node.collapsed,
        selected=node.selected,
        has_children=node.has_children,
        hidden=hidden,
    )


class ViewProjection:
    """Pre-order rows with per-row hidden flags derived from collapsed ancestors."""

    def __init__(self, store: ForestStore) -> None:
        self.store = store

    def sequence(self) -> list[ProjectedRow]:
        """Return every node in tree order, each marked hidden or not.

        A row is hidden once any strict ancestor is collapsed; collapsed
        nodes themselves stay visible.
        """
        rows: list[ProjectedRow] = []
        visited: set[str] = set()
        stack: list[tuple[str, bool]] = [(root_id, False) for root_id in reversed(self.store.roots)]
        while stack:
            tab_id, hidden = stack.pop()
            if tab_id in visited:
                continue
            node = self.store.get(tab_id)
            if node is None:
                continue
            visited.add(tab_id)
            rows.append(_row(node, hidden))
            hide_children = hidden or node.collapsed
            stack.extend((child_id, hide_children) for child_id in reversed(node.child_ids))
        return rows

    def visible_rows(self) -> list[ProjectedRow]:
        return [row for row in self.sequence() if not row.hidden]

    def is_visible(self, tab_id: str) -> bool:
        """Return whether no strict ancestor of ``tab_id`` is collapsed."""
        if tab_id not in self.store:
            return False
        for ancestor_id in self.store.ancestors(tab_id):
            ancestor = self.store.get(ancestor_id)
            if ancestor is not None and ancestor.collapsed:
                return False
        return True
