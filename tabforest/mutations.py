"""User-intent operations on the forest (collapse, reparent, reorder).

Every operation returns ``True`` when it changed the forest and then calls
``on_change`` exactly once; rejected or no-op requests return ``False`` and
stay silent. Unknown ids are expected here (a drag target can close
mid-gesture), so they are never errors.
"""

from __future__ import annotations

from collections.abc import Callable

from .config import ForestSettings
from .forest import ForestStore


class MutationOps:
    """Structural and collapsed-state mutations for one ``ForestStore``."""

    def __init__(
        self,
        store: ForestStore,
        settings: ForestSettings | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.store = store
        self.settings = settings if settings is not None else ForestSettings()
        self._on_change = on_change

    def _done(self, changed: bool) -> bool:
        if changed and self._on_change is not None:
            self._on_change()
        return changed

    def toggle_collapsed(self, tab_id: str) -> bool:
        """Flip collapsed state of a node with children.

        With ``auto_collapse`` enabled, expanding a node collapses every
        sibling that has children, so at most one branch per parent is open.
        """
        node = self.store.get(tab_id)
        if node is None or not node.child_ids:
            return False
        expanding = node.collapsed
        self.store.set_collapsed(tab_id, not expanding)
        if expanding and self.settings.auto_collapse:
            for sibling_id in self.store.siblings_of(tab_id):
                if sibling_id != tab_id:
                    self.store.set_collapsed(sibling_id, True)
        return self._done(True)

    def collapse_all(self) -> bool:
        changed = False
        for tab_id in self.store:
            changed = self.store.set_collapsed(tab_id, True) or changed
        return self._done(changed)

    def expand_all(self) -> bool:
        changed = False
        for tab_id in self.store.collapsed:
            changed = self.store.set_collapsed(tab_id, False) or changed
        return self._done(changed)

    def attach_to(self, tab_id: str, new_parent_id: str | None) -> bool:
        """Reparent ``tab_id`` as last child of ``new_parent_id`` (``None``: root).

        Rejected when either id is unknown, when attaching to itself, or when
        ``new_parent_id`` lies inside the moved subtree.
        """
        if tab_id not in self.store:
            return False
        if new_parent_id is not None:
            if new_parent_id == tab_id or new_parent_id not in self.store:
                return False
            if new_parent_id in self.store.descendants(tab_id):
                return False
        return self._done(self.store.reparent(tab_id, new_parent_id))

    def make_root(self, tab_id: str) -> bool:
        return self.attach_to(tab_id, None)

    def move_up(self, tab_id: str) -> bool:
        return self._done(self.store.move_sibling(tab_id, -1))

    def move_down(self, tab_id: str) -> bool:
        return self._done(self.store.move_sibling(tab_id, 1))
