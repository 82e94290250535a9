from packing.services.connections import ConnectionGraph


def test_components_follow_transitive_edges():
    g = ConnectionGraph()
    g.add_edge("A", "B")
    g.add_edge("B", "C")

    assert g.connected_components(["A", "B", "C", "D"]) == [["A", "B", "C"], ["D"]]


def test_components_ordered_by_first_member():
    g = ConnectionGraph()
    g.add_edge("D", "B")

    assert g.connected_components(["A", "B", "C", "D"]) == [["A"], ["B", "D"], ["C"]]
    assert g.connected_components(["D", "C", "B", "A"]) == [["D", "B"], ["C"], ["A"]]


def test_every_unit_in_exactly_one_component():
    g = ConnectionGraph()
    for a, b in [("1", "2"), ("3", "4"), ("4", "5"), ("2", "5")]:
        g.add_edge(a, b)
    ids = [str(i) for i in range(1, 9)]

    groups = g.connected_components(ids)
    flat = [uid for grp in groups for uid in grp]
    assert sorted(flat) == sorted(ids)
    assert groups[0] == ["1", "2", "3", "4", "5"]
    assert len(groups) == 4


def test_self_edge_is_ignored():
    g = ConnectionGraph()
    assert g.add_edge("A", "A") is None
    assert len(g) == 0


def test_duplicate_edge_returns_existing():
    g = ConnectionGraph()
    first = g.add_edge("A", "B")
    again = g.add_edge("A", "B")
    reverse = g.add_edge("B", "A")

    assert first.id == "A_to_B"
    assert again is first and reverse is first
    assert len(g) == 1


def test_remove_edge():
    g = ConnectionGraph()
    conn = g.add_edge("A", "B")
    g.add_edge("B", "C")

    assert g.remove_edge(conn.id) == conn
    assert g.remove_edge("missing") is None
    assert g.connected_components(["A", "B", "C"]) == [["A"], ["B", "C"]]
    # the pair can be linked again afterwards
    assert g.add_edge("B", "A").id == "B_to_A"


def test_edge_within_component_is_still_stored():
    g = ConnectionGraph()
    g.add_edge("A", "B")
    g.add_edge("B", "C")
    g.add_edge("A", "C")

    assert len(g) == 3
    assert g.connected_components(["A", "B", "C"]) == [["A", "B", "C"]]


def test_unknown_ids_are_ignored_and_prunable():
    g = ConnectionGraph()
    g.add_edge("A", "GONE")
    g.add_edge("A", "B")

    assert g.connected_components(["A", "B", "C"]) == [["A", "B"], ["C"]]
    dropped = g.prune(["A", "B", "C"])
    assert [c.id for c in dropped] == ["A_to_GONE"]
    assert [c.id for c in g.connections] == ["A_to_B"]


def test_extra_links_apply_to_one_call_only():
    g = ConnectionGraph()
    assert g.connected_components(["A", "B", "C"], extra_links=[("A", "C")]) == [["A", "C"], ["B"]]
    assert g.connected_components(["A", "B", "C"]) == [["A"], ["B"], ["C"]]


def test_neighbours_and_copy():
    g = ConnectionGraph()
    g.add_edge("A", "B")
    g.add_edge("C", "A")

    assert sorted(g.neighbours("A")) == ["B", "C"]
    assert g.is_connected("C") and not g.is_connected("D")

    clone = g.copy()
    clone.remove_edge("A_to_B")
    assert len(g) == 2 and len(clone) == 1
