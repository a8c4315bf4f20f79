"""Reconciliation of the forest against the host's live tab list.

``SyncEngine.sync`` is the full pass run at startup and after host events;
the ``on_tab_*`` handlers are the incremental paths for single events.
Host queries happen before any mutation, so a failing host leaves the
forest untouched for that cycle.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Protocol

from .config import ForestSettings
from .forest import ForestStore
from .types import CHILD_POLICY_CLOSE, TabDescriptor

logger = logging.getLogger(__name__)


class TabSourceError(RuntimeError):
    """Raised by ``TabSource`` implementations when the host is unavailable."""


class TabSource(Protocol):
    """Authoritative host tab list plus the commands the forest may issue."""

    def list_live_tabs(self) -> Sequence[Mapping[str, object] | TabDescriptor]: ...

    def currently_selected_id(self) -> str | None: ...

    def focus(self, tab_id: str) -> None: ...

    def close(self, tab_id: str) -> None: ...


def normalize_live_tabs(raw_tabs: Iterable[object]) -> list[TabDescriptor]:
    """Narrow host records to descriptors; first occurrence of an id wins."""
    seen: set[str] = set()
    descriptors: list[TabDescriptor] = []
    for raw in raw_tabs:
        descriptor = TabDescriptor.from_mapping(raw)
        if descriptor is None or descriptor.id in seen:
            continue
        seen.add(descriptor.id)
        descriptors.append(descriptor)
    return descriptors


class SyncEngine:
    """Keeps one ``ForestStore`` consistent with one ``TabSource``."""

    def __init__(
        self,
        store: ForestStore,
        source: TabSource,
        settings: ForestSettings | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.store = store
        self.source = source
        self.settings = settings if settings is not None else ForestSettings()
        self._on_change = on_change

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def _query_host(self) -> tuple[list[TabDescriptor], str | None] | None:
        try:
            live = normalize_live_tabs(self.source.list_live_tabs())
            selected_id = self.source.currently_selected_id()
        except Exception:
            logger.warning("tab source unavailable; skipping sync", exc_info=True)
            return None
        if selected_id is not None and not isinstance(selected_id, str):
            selected_id = None
        return live, selected_id

    def _close_in_host(self, tab_ids: Iterable[str]) -> None:
        for tab_id in tab_ids:
            try:
                self.source.close(tab_id)
            except Exception:
                logger.warning("failed to close tab %r in host", tab_id, exc_info=True)

    def _remove(self, tab_id: str, live_ids: set[str] | None = None) -> bool:
        """Remove ``tab_id`` with the configured policy; close live descendants."""
        removed = self.store.remove(tab_id, self.settings.child_policy)
        if not removed:
            return False
        if self.settings.child_policy == CHILD_POLICY_CLOSE:
            descendants = removed[1:]
            if live_ids is not None:
                descendants = [child_id for child_id in descendants if child_id in live_ids]
            self._close_in_host(reversed(descendants))
        return True

    def _insert(self, descriptor: TabDescriptor) -> bool:
        parent_id = self.store.last_focused_id
        if parent_id not in self.store:
            parent_id = None
        return self.store.insert(descriptor.id, descriptor.title, descriptor.kind, parent_id) is not None

    def sync(self) -> bool:
        """Run one reconciliation pass; return whether the forest changed.

        Unknown live tabs nest under the last focused tab (or become roots),
        known tabs get fresh metadata, vanished tabs are removed with the
        child policy, and selection mirrors the host focus.
        """
        snapshot = self._query_host()
        if snapshot is None:
            return False
        live, selected_id = snapshot
        live_ids = {descriptor.id for descriptor in live}
        store = self.store

        changed = store.repair()
        for descriptor in live:
            if descriptor.id not in store:
                changed = self._insert(descriptor) or changed
            else:
                changed = store.update_metadata(descriptor.id, descriptor.title, descriptor.kind) or changed

        for tab_id in store:
            if tab_id in store and tab_id not in live_ids:
                changed = self._remove(tab_id, live_ids) or changed

        changed = self._apply_selection(selected_id) or changed
        if changed:
            self._changed()
        return changed

    def _apply_selection(self, selected_id: str | None) -> bool:
        changed = self.store.set_selected(selected_id)
        if selected_id is not None:
            # May name a tab whose add event has not arrived yet.
            self.store.last_focused_id = selected_id
        return changed

    def on_tab_added(self, tab_ids: Iterable[str]) -> bool:
        """Insert newly opened host tabs, looking their metadata up in the host."""
        pending = [tab_id for tab_id in tab_ids if tab_id not in self.store]
        if not pending:
            return False
        snapshot = self._query_host()
        if snapshot is None:
            return False
        by_id = {descriptor.id: descriptor for descriptor in snapshot[0]}
        changed = False
        for tab_id in pending:
            descriptor = by_id.get(tab_id)
            if descriptor is not None:
                changed = self._insert(descriptor) or changed
        if changed:
            self._changed()
        return changed

    def on_tab_closed(self, tab_ids: Iterable[str]) -> bool:
        """Drop closed host tabs with the configured child policy."""
        changed = False
        for tab_id in tab_ids:
            changed = self._remove(tab_id) or changed
        if changed:
            self._changed()
        return changed

    def on_tab_selected(self, tab_ids: Sequence[str]) -> bool:
        """Mirror host focus; the first id is the newly selected tab."""
        selected_id = tab_ids[0] if tab_ids else None
        changed = self._apply_selection(selected_id)
        if changed:
            self._changed()
        return changed
