"""Tests for per-window session wiring: flushes, listeners, and reentrancy."""

from __future__ import annotations

import unittest

from tabforest.codec import STORAGE_KEY, decode_forest, encode_forest
from tabforest.config import ForestSettings
from tabforest.forest import ForestStore
from tabforest.prefs import MemoryPreferenceStore
from tabforest.session import MAX_DEFERRED_ACTIONS, TabForestSession


class FakeTabSource:
    def __init__(self, tab_ids: list[str], selected: str | None = None) -> None:
        self.tab_ids = list(tab_ids)
        self.selected = selected
        self.closed: list[str] = []
        self.focused: list[str] = []
        self.fail_commands = False
        self.fail_listing = False

    def list_live_tabs(self) -> list[dict[str, object]]:
        if self.fail_listing:
            raise RuntimeError("host gone")
        return [{"id": tab_id, "title": tab_id.lower(), "kind": "reader"} for tab_id in self.tab_ids]

    def currently_selected_id(self) -> str | None:
        return self.selected

    def focus(self, tab_id: str) -> None:
        if self.fail_commands:
            raise RuntimeError("host gone")
        self.focused.append(tab_id)

    def close(self, tab_id: str) -> None:
        if self.fail_commands:
            raise RuntimeError("host gone")
        self.closed.append(tab_id)


class FailingPreferenceStore(MemoryPreferenceStore):
    def set(self, key: str, value: str) -> None:
        raise OSError("disk full")


def _persisted_chain() -> str:
    store = ForestStore()
    store.insert("A")
    store.insert("B", parent_id="A")
    store.insert("C", parent_id="B")
    return encode_forest(store)


class SessionLifecycleTests(unittest.TestCase):
    def test_open_restores_persisted_topology_and_syncs(self) -> None:
        prefs = MemoryPreferenceStore({STORAGE_KEY: _persisted_chain()})
        source = FakeTabSource(["A", "B", "C"], selected="C")

        session = TabForestSession.open(source, prefs)

        self.assertEqual(session.store.descendants("A"), ["B", "C"])
        self.assertEqual(session.get_tab("C").level, 2)
        self.assertEqual(session.get_tab("C").title, "c")
        self.assertTrue(session.get_tab("C").selected)
        self.assertEqual(session.store.check_invariants(), [])

    def test_open_with_corrupt_blob_starts_flat(self) -> None:
        prefs = MemoryPreferenceStore({STORAGE_KEY: "{corrupt"})

        session = TabForestSession.open(FakeTabSource(["A", "B"]), prefs)

        self.assertEqual(session.store.roots, ("A", "B"))
        self.assertEqual(decode_forest(prefs.get(STORAGE_KEY)).roots, ("A", "B"))

    def test_open_with_unavailable_host_still_repairs_restored_forest(self) -> None:
        prefs = MemoryPreferenceStore({STORAGE_KEY: _persisted_chain()})
        source = FakeTabSource([])
        source.fail_listing = True

        with self.assertLogs("tabforest.sync", level="WARNING"):
            session = TabForestSession.open(source, prefs)

        self.assertEqual(session.store.check_invariants(), [])
        self.assertEqual([session.get_tab(tab_id).level for tab_id in ("A", "B", "C")], [0, 1, 2])
        self.assertEqual([row.id for row in session.view.sequence()], ["A", "B", "C"])

    def test_successful_mutation_flushes_and_noop_does_not(self) -> None:
        prefs = MemoryPreferenceStore()
        session = TabForestSession.open(FakeTabSource(["A", "B"]), prefs)
        prefs.values.clear()

        self.assertFalse(session.move_down("B"))
        self.assertNotIn(STORAGE_KEY, prefs.values)

        self.assertTrue(session.attach_to("B", "A"))
        self.assertEqual(decode_forest(prefs.get(STORAGE_KEY)).get("A").child_ids, ["B"])

    def test_flush_failure_is_logged_and_state_kept(self) -> None:
        session = TabForestSession(FakeTabSource(["A", "B"]), FailingPreferenceStore())

        with self.assertLogs("tabforest.session", level="WARNING"):
            session.sync()
        with self.assertLogs("tabforest.session", level="WARNING"):
            changed = session.attach_to("B", "A")

        self.assertTrue(changed)
        self.assertEqual(session.store.children_of("A"), ("B",))

    def test_close_flushes_and_ignores_later_operations(self) -> None:
        prefs = MemoryPreferenceStore()
        session = TabForestSession(FakeTabSource(["A", "B"]), prefs)
        session.sync()
        prefs.values.clear()

        session.close()

        self.assertIn(STORAGE_KEY, prefs.values)
        self.assertFalse(session.attach_to("B", "A"))
        self.assertEqual(session.store.roots, ("A", "B"))


class SessionReentrancyTests(unittest.TestCase):
    def test_listener_mutation_is_deferred_not_nested(self) -> None:
        session = TabForestSession(FakeTabSource(["A", "B", "C"]), MemoryPreferenceStore())
        session.sync()
        session.attach_to("B", "A")
        depth: list[int] = []
        active = {"running": False}

        def listener(current: TabForestSession) -> None:
            depth.append(1 if not active["running"] else 2)
            active["running"] = True
            try:
                self.assertFalse(current.attach_to("C", "A"))
            finally:
                active["running"] = False

        session.add_listener(listener)
        self.assertTrue(session.toggle_collapsed("A"))

        self.assertEqual(session.store.children_of("A"), ("B", "C"))
        self.assertNotIn(2, depth)

    def test_runaway_listener_is_bounded(self) -> None:
        session = TabForestSession(FakeTabSource(["A", "B"]), MemoryPreferenceStore())
        session.sync()
        session.attach_to("B", "A")
        calls: list[int] = []

        def listener(current: TabForestSession) -> None:
            calls.append(1)
            current.toggle_collapsed("A")

        session.add_listener(listener)
        session.toggle_collapsed("A")

        self.assertLessEqual(len(calls), MAX_DEFERRED_ACTIONS + 1)
        self.assertEqual(session.store.check_invariants(), [])

    def test_auto_collapse_through_session_keeps_one_branch_open(self) -> None:
        session = TabForestSession(
            FakeTabSource(["A", "A1", "B", "B1"]),
            MemoryPreferenceStore(),
            ForestSettings(auto_collapse=True),
        )
        session.sync()
        session.attach_to("A1", "A")
        session.attach_to("B1", "B")
        session.collapse_all()

        session.toggle_collapsed("B")

        self.assertTrue(session.get_tab("A").collapsed)
        self.assertFalse(session.get_tab("B").collapsed)
        self.assertTrue(session.view.is_visible("B1"))
        self.assertFalse(session.view.is_visible("A1"))


class SessionHostCommandTests(unittest.TestCase):
    def test_close_tab_tree_closes_children_first(self) -> None:
        source = FakeTabSource(["A", "B", "C", "D"])
        session = TabForestSession(source, MemoryPreferenceStore())
        session.sync()
        session.attach_to("B", "A")
        session.attach_to("C", "B")
        session.attach_to("D", "A")

        session.close_tab_tree("A")

        self.assertEqual(source.closed, ["D", "C", "B", "A"])

    def test_select_tab_delegates_to_host(self) -> None:
        source = FakeTabSource(["A"])
        session = TabForestSession(source, MemoryPreferenceStore())

        session.select_tab("A")

        self.assertEqual(source.focused, ["A"])

    def test_host_command_failures_are_logged(self) -> None:
        source = FakeTabSource(["A"])
        source.fail_commands = True
        session = TabForestSession(source, MemoryPreferenceStore())

        with self.assertLogs("tabforest.session", level="WARNING"):
            session.select_tab("A")
        with self.assertLogs("tabforest.session", level="WARNING"):
            session.close_tab("A")

    def test_host_events_route_through_sync_engine(self) -> None:
        source = FakeTabSource(["A"])
        session = TabForestSession(source, MemoryPreferenceStore())
        session.sync()
        session.on_tab_selected(["A"])

        source.tab_ids.append("B")
        self.assertTrue(session.on_tab_added(["B"]))
        self.assertEqual(session.store.children_of("A"), ("B",))

        self.assertTrue(session.on_tab_closed(["A"]))
        self.assertEqual(session.store.roots, ("B",))


if __name__ == "__main__":
    unittest.main()
