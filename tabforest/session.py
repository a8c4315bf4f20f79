"""Per-window forest session: wiring, reentrancy guard, and persistence flush.

A session owns one ``ForestStore`` together with the ``SyncEngine``,
``MutationOps`` and ``ViewProjection`` bound to it. Operations run to
completion one at a time; an operation requested while another is running
(typically from a change listener or a flush) is queued and run afterwards
instead of nesting. Flushes are fire-and-forget: store failures are logged
and the in-memory forest stays authoritative.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable

from .codec import STORAGE_KEY, decode_forest, encode_forest
from .config import ForestSettings
from .forest import ForestStore
from .mutations import MutationOps
from .prefs import PreferenceStore
from .projection import ViewProjection
from .sync import SyncEngine, TabSource
from .types import TabNode

logger = logging.getLogger(__name__)

MAX_DEFERRED_ACTIONS = 64

ChangeListener = Callable[["TabForestSession"], None]


class TabForestSession:
    """Forest state and operations for one host window."""

    def __init__(
        self,
        source: TabSource,
        prefs: PreferenceStore,
        settings: ForestSettings | None = None,
        store: ForestStore | None = None,
    ) -> None:
        self.source = source
        self.prefs = prefs
        self.settings = settings if settings is not None else ForestSettings()
        self.store = store if store is not None else ForestStore()
        self.sync_engine = SyncEngine(self.store, source, self.settings, on_change=self._mark_dirty)
        self.ops = MutationOps(self.store, self.settings, on_change=self._mark_dirty)
        self.view = ViewProjection(self.store)
        self._listeners: list[ChangeListener] = []
        self._busy = False
        self._dirty = False
        self._deferred: deque[tuple[Callable[..., bool], tuple[object, ...]]] = deque()
        self.closed = False

    @classmethod
    def open(
        cls,
        source: TabSource,
        prefs: PreferenceStore,
        settings: ForestSettings | None = None,
    ) -> TabForestSession:
        """Restore the persisted forest and reconcile it with the host once."""
        try:
            blob = prefs.get(STORAGE_KEY)
        except Exception:
            logger.warning("could not read stored forest; starting empty", exc_info=True)
            blob = None
        store = decode_forest(blob)
        store.repair()
        session = cls(source, prefs, settings, store=store)
        session.sync()
        return session

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _mark_dirty(self) -> None:
        self._dirty = True

    def flush(self) -> bool:
        """Write the encoded forest to the preference store; log failures."""
        try:
            self.prefs.set(STORAGE_KEY, encode_forest(self.store))
        except Exception:
            logger.warning("failed to persist tab forest", exc_info=True)
            return False
        return True

    def _run_one(self, action: Callable[..., bool], args: tuple[object, ...]) -> bool:
        self._dirty = False
        changed = action(*args)
        if self._dirty:
            self._dirty = False
            self.flush()
            for listener in list(self._listeners):
                try:
                    listener(self)
                except Exception:
                    logger.warning("forest change listener failed", exc_info=True)
        return changed

    def _dispatch(self, action: Callable[..., bool], *args: object) -> bool:
        """Run ``action`` now, or queue it when another operation is running."""
        if self.closed:
            return False
        if self._busy:
            if len(self._deferred) >= MAX_DEFERRED_ACTIONS:
                logger.debug("dropping deferred forest action %s", getattr(action, "__name__", action))
                return False
            self._deferred.append((action, args))
            return False
        self._busy = True
        try:
            changed = self._run_one(action, args)
            drained = 0
            while self._deferred and drained < MAX_DEFERRED_ACTIONS:
                deferred_action, deferred_args = self._deferred.popleft()
                drained += 1
                self._run_one(deferred_action, deferred_args)
            if self._deferred:
                logger.debug("dropping %d deferred forest actions", len(self._deferred))
                self._deferred.clear()
        finally:
            self._busy = False
        return changed

    def sync(self) -> bool:
        return self._dispatch(self.sync_engine.sync)

    def on_tab_added(self, tab_ids: list[str]) -> bool:
        return self._dispatch(self.sync_engine.on_tab_added, list(tab_ids))

    def on_tab_closed(self, tab_ids: list[str]) -> bool:
        return self._dispatch(self.sync_engine.on_tab_closed, list(tab_ids))

    def on_tab_selected(self, tab_ids: list[str]) -> bool:
        return self._dispatch(self.sync_engine.on_tab_selected, list(tab_ids))

    def toggle_collapsed(self, tab_id: str) -> bool:
        return self._dispatch(self.ops.toggle_collapsed, tab_id)

    def collapse_all(self) -> bool:
        return self._dispatch(self.ops.collapse_all)

    def expand_all(self) -> bool:
        return self._dispatch(self.ops.expand_all)

    def attach_to(self, tab_id: str, new_parent_id: str | None) -> bool:
        return self._dispatch(self.ops.attach_to, tab_id, new_parent_id)

    def make_root(self, tab_id: str) -> bool:
        return self._dispatch(self.ops.make_root, tab_id)

    def move_up(self, tab_id: str) -> bool:
        return self._dispatch(self.ops.move_up, tab_id)

    def move_down(self, tab_id: str) -> bool:
        return self._dispatch(self.ops.move_down, tab_id)

    def get_tab(self, tab_id: str) -> TabNode | None:
        return self.store.get(tab_id)

    def select_tab(self, tab_id: str) -> None:
        """Ask the host to focus ``tab_id``; the forest follows on the select event."""
        try:
            self.source.focus(tab_id)
        except Exception:
            logger.warning("failed to select tab %r", tab_id, exc_info=True)

    def close_tab(self, tab_id: str) -> None:
        try:
            self.source.close(tab_id)
        except Exception:
            logger.warning("failed to close tab %r", tab_id, exc_info=True)

    def close_tab_tree(self, tab_id: str) -> None:
        """Close ``tab_id`` and its descendants, children before parents."""
        if tab_id not in self.store:
            return
        for descendant_id in reversed(self.store.descendants(tab_id)):
            self.close_tab(descendant_id)
        self.close_tab(tab_id)

    def close(self) -> None:
        """Final flush on window teardown; later operations are ignored."""
        if self.closed:
            return
        self.flush()
        self._listeners.clear()
        self._deferred.clear()
        self.closed = True
