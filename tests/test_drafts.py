from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from conftest import make_unit
from packing.db.models import DraftBox
from packing.domain.models import Box, BoxItem, PackingState
from packing.services.box_assigner import assign_boxes
from packing.services.connections import ConnectionGraph
from packing.services.drafts import DraftStore, reconcile_draft, restore_session_state
from packing.services.session import PackingSession


def _units():
    return [make_unit("A", 2), make_unit("B", 3), make_unit("C", 1), make_unit("D", 4)]


def _box(n, members, qty=None):
    qty = qty or {}
    items = [BoxItem(unit_id=u, catalog_number=f"CAT-{u}", quantity=qty.get(u, 1))
             for u in members if qty.get(u, 1) > 0]
    return Box(box_number=n, items=items, unit_ids=list(members))


def _db_error():
    return OperationalError("SELECT 1", {}, Exception("database is locked"))


# ---------------------------------------------------------------------
# reconcile_draft
# ---------------------------------------------------------------------
def test_no_draft_gives_initial_state():
    restored = reconcile_draft(_units())

    assert restored.source == "initial"
    assert {k: (s.quantity, s.box_number) for k, s in restored.packing_state.items()} == {
        "A": (2, 1), "B": (3, 2), "C": (1, 3), "D": (4, 4),
    }
    assert len(restored.graph) == 0


def test_boxes_restore_grouping_as_a_chain():
    restored = reconcile_draft(_units(), [_box(1, ["A", "C", "D"], {"A": 2, "C": 1, "D": 3}), _box(2, ["B"], {"B": 3})])

    assert restored.source == "boxes"
    assert [c.id for c in restored.graph.connections] == ["A_to_C", "C_to_D"]
    assert restored.packing_state["D"] == PackingState(quantity=3, box_number=1)
    assert restored.packing_state["B"] == PackingState(quantity=3, box_number=2)


def test_boxes_win_over_state_map():
    state = {"A": PackingState(0, 9)}
    restored = reconcile_draft(_units(), [_box(1, ["A", "B"], {"A": 2, "B": 3})], state)

    assert restored.source == "boxes"
    assert restored.packing_state["A"] == PackingState(quantity=2, box_number=1)


def test_orphaned_draft_units_are_dropped():
    restored = reconcile_draft(_units(), [_box(1, ["A", "GONE", "B"], {"A": 1, "GONE": 5, "B": 1})])

    assert "GONE" not in restored.packing_state
    assert [c.id for c in restored.graph.connections] == ["A_to_B"]


def test_quantities_are_clamped_to_unit_quantity():
    restored = reconcile_draft(_units(), [_box(1, ["A"], {"A": 50})])
    assert restored.packing_state["A"].quantity == 2


def test_units_missing_from_draft_get_fresh_boxes():
    restored = reconcile_draft(_units(), [_box(1, ["A", "B"], {"A": 2, "B": 3})])

    assert restored.packing_state["C"] == PackingState(quantity=1, box_number=2)
    assert restored.packing_state["D"] == PackingState(quantity=4, box_number=3)


def test_state_map_used_when_no_boxes():
    state = {"A": PackingState(1, 1), "B": PackingState(7, 1), "X": PackingState(1, 2)}
    restored = reconcile_draft(_units(), (), state)

    assert restored.source == "state"
    assert restored.packing_state["A"] == PackingState(1, 1)
    assert restored.packing_state["B"] == PackingState(3, 1)
    assert "X" not in restored.packing_state
    assert restored.packing_state["C"].box_number == 2
    assert len(restored.graph) == 0


def test_zero_quantity_unit_keeps_its_box_after_reload():
    units = _units()
    g = ConnectionGraph()
    g.add_edge("A", "B")
    g.add_edge("B", "D")
    before = PackingSession("SO-1", units, graph=g)
    before.set_quantity("B", 0)

    restored = reconcile_draft(units, before.boxes)
    after = PackingSession("SO-1", units, restored.packing_state, restored.graph)

    assert restored.packing_state["B"] == PackingState(quantity=0, box_number=1)
    assert [b.unit_ids for b in after.boxes] == [["A", "B", "D"], ["C"]]
    assert [i.unit_id for i in after.boxes[0].items] == ["A", "D"]


def test_unpacked_unit_restored_from_state_map():
    units = _units()
    s = PackingSession("SO-1", units)
    s.set_quantity("B", 0)
    assert s.packing_state["B"] == PackingState(0, 4)

    restored = reconcile_draft(units, s.boxes, s.packing_state)
    again = PackingSession("SO-1", units, restored.packing_state, restored.graph)

    assert restored.packing_state["B"] == PackingState(0, 4)
    assert again.packing_state == s.packing_state
    assert again.boxes == s.boxes


def test_two_connected_units_reload_into_box_one():
    units = [make_unit("u1", 5), make_unit("u2", 3)]
    s = PackingSession("SO-1", units)
    s.connect("u1", "u2")

    restored = reconcile_draft(units, s.boxes)
    assert restored.packing_state == {"u1": PackingState(5, 1), "u2": PackingState(3, 1)}
    assert assign_boxes(units, restored.packing_state, restored.graph) == s.boxes


def test_round_trip_preserves_grouping_and_quantities():
    units = _units()
    s = PackingSession("SO-1", units)
    s.connect("A", "C")
    s.connect("D", "B")
    s.set_quantity("D", 1)

    restored = reconcile_draft(units, s.boxes, s.packing_state)
    again = PackingSession("SO-1", units, restored.packing_state, restored.graph)

    assert [sorted(b.unit_ids) for b in again.boxes] == [sorted(b.unit_ids) for b in s.boxes]
    assert again.packing_state == s.packing_state


# ---------------------------------------------------------------------
# DraftStore
# ---------------------------------------------------------------------
def test_store_round_trip(db):
    units = _units()
    g = ConnectionGraph()
    g.add_edge("A", "C")
    state = {u.unit_id: PackingState(u.unit_quantity, i) for i, u in enumerate(units, start=1)}
    boxes = assign_boxes(units, state, g)

    store = DraftStore(db)
    store.save_draft_state("SO-9", state)
    store.save_draft_boxes("SO-9", boxes)

    assert store.load_draft_state("SO-9") == state
    assert store.load_draft_boxes("SO-9") == boxes
    assert store.load_draft_boxes("OTHER") == []


def test_store_save_replaces_previous_draft(db):
    store = DraftStore(db)
    store.save_draft_boxes("SO-9", [_box(1, ["A"]), _box(2, ["B"])])
    store.save_draft_boxes("SO-9", [_box(1, ["A", "B"])])

    loaded = store.load_draft_boxes("SO-9")
    assert len(loaded) == 1 and loaded[0].unit_ids == ["A", "B"]


def test_store_clear_draft(db):
    store = DraftStore(db)
    store.save_draft_state("SO-9", {"A": PackingState(1, 1)})
    store.save_draft_boxes("SO-9", [_box(1, ["A"])])

    store.clear_draft("SO-9")
    assert store.load_draft_state("SO-9") == {}
    assert store.load_draft_boxes("SO-9") == []


def test_store_tolerates_malformed_json(db):
    db.add(DraftBox(order_no="SO-9", box_number=1, items_json="not json", unit_ids_json='{"a": 1}'))
    db.commit()

    loaded = DraftStore(db).load_draft_boxes("SO-9")
    assert loaded == [Box(box_number=1, items=[], total_weight=None, unit_ids=[])]


# ---------------------------------------------------------------------
# restore_session_state
# ---------------------------------------------------------------------
def test_first_open_persists_initial_draft(db):
    units = _units()
    store = DraftStore(db)

    restored = restore_session_state(store, "SO-1", units)

    assert restored.source == "initial"
    assert store.load_draft_state("SO-1") == restored.packing_state
    assert len(store.load_draft_boxes("SO-1")) == 4


def test_restore_prefers_saved_boxes(db):
    units = _units()
    store = DraftStore(db)
    store.save_draft_boxes("SO-1", [_box(1, ["A", "B", "C", "D"], {"A": 2, "B": 3, "C": 1, "D": 4})])

    restored = restore_session_state(store, "SO-1", units)
    assert restored.source == "boxes"
    assert len(restored.graph) == 3


def test_load_failure_falls_back_to_defaults():
    store = MagicMock(spec=DraftStore)
    store.load_draft_boxes.side_effect = _db_error()
    store.load_draft_state.side_effect = _db_error()

    restored = restore_session_state(store, "SO-1", _units())

    assert restored.source == "initial"
    store.save_draft_state.assert_called_once()
    store.save_draft_boxes.assert_called_once()


def test_initial_save_failure_is_not_fatal():
    store = MagicMock(spec=DraftStore)
    store.load_draft_boxes.return_value = []
    store.load_draft_state.return_value = {}
    store.save_draft_state.side_effect = _db_error()

    restored = restore_session_state(store, "SO-1", _units())
    assert restored.source == "initial"
    assert len(restored.packing_state) == 4
