"""Tests for pre-order projection and visibility under collapsed ancestors."""

from __future__ import annotations

import unittest

from tabforest.forest import ForestStore
from tabforest.projection import ViewProjection


def _store() -> ForestStore:
    store = ForestStore()
    store.insert("A", "Alpha", "library")
    store.insert("B", "Beta", "reader", parent_id="A")
    store.insert("C", "Gamma", "reader", parent_id="B")
    store.insert("D", "Delta", "reader", parent_id="A")
    store.insert("E", "Epsilon", "note")
    return store


class ViewProjectionTests(unittest.TestCase):
    def test_sequence_is_pre_order_from_roots(self) -> None:
        rows = ViewProjection(_store()).sequence()

        self.assertEqual([row.id for row in rows], ["A", "B", "C", "D", "E"])
        self.assertEqual([row.level for row in rows], [0, 1, 2, 1, 0])
        self.assertFalse(any(row.hidden for row in rows))

    def test_collapsed_node_hides_descendants_but_not_itself(self) -> None:
        store = _store()
        store.set_collapsed("B", True)
        view = ViewProjection(store)

        hidden = {row.id: row.hidden for row in view.sequence()}

        self.assertEqual(hidden, {"A": False, "B": False, "C": True, "D": False, "E": False})
        self.assertEqual([row.id for row in view.visible_rows()], ["A", "B", "D", "E"])

    def test_is_visible_follows_collapse_and_expand(self) -> None:
        store = _store()
        view = ViewProjection(store)

        store.set_collapsed("A", True)
        self.assertFalse(view.is_visible("B"))
        self.assertFalse(view.is_visible("C"))
        self.assertTrue(view.is_visible("A"))

        store.set_collapsed("A", False)
        self.assertTrue(view.is_visible("B"))
        self.assertTrue(view.is_visible("C"))

    def test_is_visible_unknown_id_is_false(self) -> None:
        self.assertFalse(ViewProjection(_store()).is_visible("missing"))

    def test_rows_snapshot_node_metadata(self) -> None:
        store = _store()
        store.set_selected("D")

        row = {row.id: row for row in ViewProjection(store).sequence()}["D"]

        self.assertEqual(row.title, "Delta")
        self.assertEqual(row.parent_id, "A")
        self.assertTrue(row.selected)
        self.assertFalse(row.has_children)
        self.assertTrue({r.id: r for r in ViewProjection(store).sequence()}["A"].has_children)

    def test_sequence_survives_cyclic_child_lists(self) -> None:
        store = _store()
        store.get("C").child_ids.append("A")

        rows = ViewProjection(store).sequence()

        self.assertEqual([row.id for row in rows], ["A", "B", "C", "D", "E"])


if __name__ == "__main__":
    unittest.main()
