"""In-memory tab forest and the primitives that keep it consistent.

``ForestStore`` owns the id -> node mapping, the ordered root list, and the
collapsed index. Every topology change goes through a method here so the
structural invariants (acyclic, referentially intact, consistent levels,
single placement, collapsed index matching node flags) hold after each call.
All walks are iterative and guarded by visited sets, so corrupted input
cannot recurse or loop forever.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from .types import CHILD_POLICY_CLOSE, CHILD_POLICY_PROMOTE, TabNode

logger = logging.getLogger(__name__)


class ForestStore:
    """Ordered forest of ``TabNode`` records keyed by host tab id."""

    def __init__(self) -> None:
        self._nodes: dict[str, TabNode] = {}
        self._roots: list[str] = []
        self._collapsed: set[str] = set()
        self.last_focused_id: str | None = None

    @classmethod
    def restore(
        cls,
        nodes: Iterable[TabNode],
        roots: Iterable[str],
        collapsed: Iterable[str],
    ) -> ForestStore:
        """Build a store from decoded state verbatim, without validation.

        Duplicate node ids keep the first occurrence. Call ``repair`` before
        relying on the invariants.
        """
        store = cls()
        for node in nodes:
            store._nodes.setdefault(node.id, node)
        store._roots = list(roots)
        store._collapsed = set(collapsed)
        return store

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, tab_id: object) -> bool:
        return tab_id in self._nodes

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._nodes))

    def get(self, tab_id: str | None) -> TabNode | None:
        if tab_id is None:
            return None
        return self._nodes.get(tab_id)

    @property
    def roots(self) -> tuple[str, ...]:
        return tuple(self._roots)

    @property
    def collapsed(self) -> frozenset[str]:
        return frozenset(self._collapsed)

    def children_of(self, tab_id: str | None) -> tuple[str, ...]:
        """Return ordered child ids, or the root list when ``tab_id`` is ``None``."""
        if tab_id is None:
            return tuple(self._roots)
        node = self._nodes.get(tab_id)
        return tuple(node.child_ids) if node is not None else ()

    def _sibling_list(self, node: TabNode) -> list[str]:
        parent = self._nodes.get(node.parent_id) if node.parent_id is not None else None
        return parent.child_ids if parent is not None else self._roots

    def siblings_of(self, tab_id: str) -> tuple[str, ...]:
        """Return the sibling list containing ``tab_id`` (including itself)."""
        node = self._nodes.get(tab_id)
        if node is None:
            return ()
        return tuple(self._sibling_list(node))

    def descendants(self, tab_id: str) -> list[str]:
        """Return subtree ids below ``tab_id`` in pre-order.

        The walk visits each id at most once and stops after ``len(self)``
        results, so it terminates even if child lists form a cycle.
        """
        node = self._nodes.get(tab_id)
        if node is None:
            return []
        budget = len(self._nodes)
        visited = {tab_id}
        result: list[str] = []
        stack = list(reversed(node.child_ids))
        while stack and len(result) < budget:
            child_id = stack.pop()
            if child_id in visited:
                continue
            child = self._nodes.get(child_id)
            if child is None:
                continue
            visited.add(child_id)
            result.append(child_id)
            stack.extend(reversed(child.child_ids))
        return result

    def ancestors(self, tab_id: str) -> list[str]:
        """Return parent chain of ``tab_id``, nearest first."""
        node = self._nodes.get(tab_id)
        if node is None:
            return []
        seen = {tab_id}
        result: list[str] = []
        current = node.parent_id
        while current is not None and current not in seen:
            parent = self._nodes.get(current)
            if parent is None:
                break
            seen.add(current)
            result.append(current)
            current = parent.parent_id
        return result

    def insert(
        self,
        tab_id: str,
        title: str = "",
        kind: str = "",
        parent_id: str | None = None,
    ) -> TabNode | None:
        """Add a node as last child of a known ``parent_id`` or as a new root.

        Returns ``None`` without changing anything when ``tab_id`` exists.
        """
        if tab_id in self._nodes:
            return None
        node = TabNode(id=tab_id, title=title, kind=kind)
        parent = self._nodes.get(parent_id) if parent_id is not None else None
        if parent is not None:
            node.parent_id = parent.id
            node.level = parent.level + 1
            parent.child_ids.append(tab_id)
        else:
            self._roots.append(tab_id)
        self._nodes[tab_id] = node
        return node

    def remove(self, tab_id: str, policy: str = CHILD_POLICY_PROMOTE) -> list[str]:
        """Remove ``tab_id`` and return every id dropped from the forest.

        ``promote`` appends the children, in order, after the existing children
        of the removed node's parent (or to the end of the roots). ``close``
        drops the whole subtree; the node comes first in the result, followed
        by its descendants in pre-order.
        """
        node = self._nodes.get(tab_id)
        if node is None:
            return []
        if policy == CHILD_POLICY_CLOSE:
            removed = [tab_id, *self.descendants(tab_id)]
            self._detach(node)
            for removed_id in removed:
                self._nodes.pop(removed_id, None)
                self._collapsed.discard(removed_id)
            if self.last_focused_id in removed:
                self.last_focused_id = None
            return removed
        if policy != CHILD_POLICY_PROMOTE:
            raise ValueError(f"unknown child policy: {policy!r}")

        parent = self._nodes.get(node.parent_id) if node.parent_id is not None else None
        target = parent.child_ids if parent is not None else self._roots
        promoted: list[str] = []
        for child_id in node.child_ids:
            child = self._nodes.get(child_id)
            if child is None or child_id in promoted:
                continue
            child.parent_id = parent.id if parent is not None else None
            target.append(child_id)
            promoted.append(child_id)
        node.child_ids = []
        self._detach(node)
        del self._nodes[tab_id]
        self._collapsed.discard(tab_id)
        if self.last_focused_id == tab_id:
            self.last_focused_id = None
        for child_id in promoted:
            self._relevel(child_id)
        return [tab_id]

    def reparent(self, tab_id: str, new_parent_id: str | None) -> bool:
        """Move ``tab_id`` to the end of ``new_parent_id``'s children (or roots).

        Refuses unknown ids, self-parenting and moves under a descendant.
        Returns ``False`` when nothing changed.
        """
        node = self._nodes.get(tab_id)
        if node is None:
            return False
        new_parent: TabNode | None = None
        if new_parent_id is not None:
            new_parent = self._nodes.get(new_parent_id)
            if new_parent is None or new_parent_id == tab_id:
                return False
            if tab_id in self.ancestors(new_parent_id):
                return False
        target = new_parent.child_ids if new_parent is not None else self._roots
        if node.parent_id == new_parent_id and target and target[-1] == tab_id:
            return False
        self._detach(node)
        node.parent_id = new_parent_id
        target.append(tab_id)
        self._relevel(tab_id)
        return True

    def move_sibling(self, tab_id: str, offset: int) -> bool:
        """Swap ``tab_id`` with the sibling ``offset`` positions away."""
        node = self._nodes.get(tab_id)
        if node is None:
            return False
        siblings = self._sibling_list(node)
        try:
            idx = siblings.index(tab_id)
        except ValueError:
            return False
        other = idx + offset
        if other < 0 or other >= len(siblings) or other == idx:
            return False
        siblings[idx], siblings[other] = siblings[other], siblings[idx]
        return True

    def set_collapsed(self, tab_id: str, collapsed: bool) -> bool:
        """Set the collapsed flag and index together; leaves never collapse."""
        node = self._nodes.get(tab_id)
        if node is None or node.collapsed == collapsed:
            return False
        if collapsed and not node.child_ids:
            return False
        self._set_collapsed_flag(node, collapsed)
        return True

    def update_metadata(self, tab_id: str, title: str, kind: str) -> bool:
        node = self._nodes.get(tab_id)
        if node is None or (node.title == title and node.kind == kind):
            return False
        node.title = title
        node.kind = kind
        return True

    def set_selected(self, tab_id: str | None) -> bool:
        """Mark exactly ``tab_id`` selected (or nothing when ``None``/unknown)."""
        changed = False
        for node in self._nodes.values():
            selected = node.id == tab_id
            if node.selected != selected:
                node.selected = selected
                changed = True
        return changed

    def clear(self) -> None:
        self._nodes.clear()
        self._roots.clear()
        self._collapsed.clear()
        self.last_focused_id = None

    def _set_collapsed_flag(self, node: TabNode, collapsed: bool) -> None:
        node.collapsed = collapsed
        if collapsed:
            self._collapsed.add(node.id)
        else:
            self._collapsed.discard(node.id)

    def _detach(self, node: TabNode) -> None:
        """Unlink ``node`` from its sibling list; an emptied parent is expanded."""
        siblings = self._sibling_list(node)
        if node.id in siblings:
            siblings.remove(node.id)
        parent = self._nodes.get(node.parent_id) if node.parent_id is not None else None
        if parent is not None and not parent.child_ids and parent.collapsed:
            self._set_collapsed_flag(parent, False)

    def _relevel(self, tab_id: str) -> None:
        """Re-derive levels for ``tab_id`` and its whole subtree."""
        node = self._nodes.get(tab_id)
        if node is None:
            return
        parent = self._nodes.get(node.parent_id) if node.parent_id is not None else None
        node.level = parent.level + 1 if parent is not None else 0
        visited = {tab_id}
        stack = [node]
        while stack:
            current = stack.pop()
            for child_id in current.child_ids:
                if child_id in visited:
                    continue
                child = self._nodes.get(child_id)
                if child is None:
                    continue
                visited.add(child_id)
                child.level = current.level + 1
                stack.append(child)

    def _claim_subtree(self, start: TabNode, reached: set[str]) -> None:
        """Adopt reachable, unclaimed children below ``start`` (first claim wins)."""
        stack = [start]
        while stack:
            owner = stack.pop()
            kept: list[str] = []
            for child_id in owner.child_ids:
                child = self._nodes.get(child_id)
                if child is None or child_id in reached:
                    continue
                reached.add(child_id)
                child.parent_id = owner.id
                kept.append(child_id)
                stack.append(child)
            owner.child_ids = kept

    def _signature(self) -> tuple[object, ...]:
        return (
            tuple(self._roots),
            tuple(
                (node.id, node.parent_id, tuple(node.child_ids), node.level, node.collapsed)
                for node in self._nodes.values()
            ),
            frozenset(self._collapsed),
        )

    def repair(self) -> bool:
        """Normalize restored or corrupted state so every invariant holds.

        Roots are claimed first, in order, then their subtrees; nodes not
        reached that way are attached to a reached parent when their
        ``parent_id`` names one, otherwise they become roots. Levels and the
        collapsed index are then re-derived from the topology and node flags.
        Returns whether anything changed.
        """
        before = self._signature()
        reached: set[str] = set()
        roots: list[str] = []

        for root_id in self._roots:
            node = self._nodes.get(root_id)
            if node is None or root_id in reached:
                continue
            reached.add(root_id)
            node.parent_id = None
            roots.append(root_id)
            self._claim_subtree(node, reached)

        for node_id, node in self._nodes.items():
            if node_id in reached:
                continue
            reached.add(node_id)
            parent = self._nodes.get(node.parent_id) if node.parent_id is not None else None
            if parent is not None and parent.id in reached:
                parent.child_ids.append(node_id)
            else:
                node.parent_id = None
                roots.append(node_id)
            self._claim_subtree(node, reached)

        self._roots = roots
        for root_id in roots:
            self._relevel(root_id)
        for node in self._nodes.values():
            if node.collapsed and not node.child_ids:
                node.collapsed = False
        self._collapsed = {node.id for node in self._nodes.values() if node.collapsed}

        changed = self._signature() != before
        if changed:
            logger.debug("repaired forest topology (%d nodes)", len(self._nodes))
        return changed

    def check_invariants(self) -> list[str]:
        """Return human-readable invariant violations (empty when consistent)."""
        problems: list[str] = []
        placements: dict[str, int] = {}

        for root_id in self._roots:
            placements[root_id] = placements.get(root_id, 0) + 1
            root = self._nodes.get(root_id)
            if root is None:
                problems.append(f"root {root_id!r} is not a known node")
            elif root.parent_id is not None:
                problems.append(f"root {root_id!r} has parent {root.parent_id!r}")

        for node in self._nodes.values():
            if node.parent_id is not None and node.parent_id not in self._nodes:
                problems.append(f"{node.id!r} points at missing parent {node.parent_id!r}")
            for child_id in node.child_ids:
                placements[child_id] = placements.get(child_id, 0) + 1
                child = self._nodes.get(child_id)
                if child is None:
                    problems.append(f"{node.id!r} lists missing child {child_id!r}")
                elif child.parent_id != node.id:
                    problems.append(f"{child_id!r} listed under {node.id!r} but parent is {child.parent_id!r}")

        for node_id, node in self._nodes.items():
            count = placements.get(node_id, 0)
            if count != 1:
                problems.append(f"{node_id!r} is placed {count} times")

            seen = {node_id}
            current = node.parent_id
            while current is not None:
                if current in seen:
                    problems.append(f"{node_id!r} is part of a parent cycle")
                    break
                seen.add(current)
                parent = self._nodes.get(current)
                current = parent.parent_id if parent is not None else None

            parent = self._nodes.get(node.parent_id) if node.parent_id is not None else None
            expected = parent.level + 1 if parent is not None else 0
            if node.level != expected:
                problems.append(f"{node_id!r} has level {node.level}, expected {expected}")

        flagged = {node.id for node in self._nodes.values() if node.collapsed}
        if flagged != self._collapsed:
            problems.append(
                f"collapsed index {sorted(self._collapsed)!r} does not match flags {sorted(flagged)!r}"
            )
        return problems
