# packing/services/box_assigner.py
"""
Derive the box list from the packing state and the connection graph.

Units end up in the same box when they are connected (directly or
transitively) or currently share a box number. Groups with at least one
packed unit become boxes 1..N in order of their first unit. Groups where every
unit is at quantity 0 get no box; they keep the numbers N+1, N+2, ... so the
operator still sees where they would go. One numbering feeds the packing
state, the box list and the labels.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from packing.domain.models import Box, BoxItem, PackableUnit, PackingState
from packing.services.connections import ConnectionGraph


def _shared_box_links(units: Sequence[PackableUnit],
                      packing_state: Mapping[str, PackingState]) -> List[Tuple[str, str]]:
    """Chain units that sit under the same box number."""
    last_in_box: Dict[int, str] = {}
    links: List[Tuple[str, str]] = []
    for u in units:
        state = packing_state.get(u.unit_id)
        if state is None:
            continue
        prev = last_in_box.get(state.box_number)
        if prev is not None:
            links.append((prev, u.unit_id))
        last_in_box[state.box_number] = u.unit_id
    return links


def _numbered_groups(units: Sequence[PackableUnit],
                     packing_state: Mapping[str, PackingState],
                     graph: ConnectionGraph) -> List[Tuple[int, List[PackableUnit], bool]]:
    """(box number, members, packed) per group; packed groups are numbered first."""
    tracked = [u for u in units if u.unit_id in packing_state]
    by_id = {u.unit_id: u for u in tracked}

    components = graph.connected_components(
        [u.unit_id for u in tracked],
        extra_links=_shared_box_links(tracked, packing_state),
    )

    packed, unpacked = [], []
    for member_ids in components:
        members = [by_id[uid] for uid in member_ids]
        if any(packing_state[u.unit_id].quantity > 0 for u in members):
            packed.append(members)
        else:
            unpacked.append(members)

    numbered = [(n, members, True) for n, members in enumerate(packed, start=1)]
    numbered += [(n, members, False) for n, members in enumerate(unpacked, start=len(packed) + 1)]
    return numbered


def _estimate_weight(members: Iterable[PackableUnit], packing_state: Mapping[str, PackingState]) -> Optional[float]:
    total = 0.0
    known = False
    for u in members:
        if u.unit_weight is None:
            continue
        known = True
        total += u.unit_weight * packing_state[u.unit_id].quantity
    return round(total, 3) if known else None


def assign_boxes(units: Sequence[PackableUnit],
                 packing_state: Mapping[str, PackingState],
                 graph: ConnectionGraph) -> List[Box]:
    """
    Build the renumbered list of packed boxes.

    Units without a packing state are skipped. Zero-quantity units stay in
    their box's ``unit_ids`` but add no item. Calling this twice on unchanged
    input yields equal output.
    """
    boxes: List[Box] = []
    for box_number, members, packed in _numbered_groups(units, packing_state, graph):
        if not packed:
            continue
        items = [
            BoxItem(
                unit_id=u.unit_id,
                catalog_number=u.catalog_number,
                quantity=packing_state[u.unit_id].quantity,
                description=u.description,
                is_split=u.is_split,
                split_index=u.split_index,
                split_total=u.split_total,
            )
            for u in members
            if packing_state[u.unit_id].quantity > 0
        ]
        boxes.append(Box(
            box_number=box_number,
            items=items,
            total_weight=_estimate_weight(members, packing_state),
            unit_ids=[u.unit_id for u in members],
        ))
    return boxes


def box_numbers(units: Sequence[PackableUnit],
                packing_state: Mapping[str, PackingState],
                graph: ConnectionGraph) -> Dict[str, int]:
    """Derived box number of every tracked unit, unpacked ones included."""
    return {
        u.unit_id: box_number
        for box_number, members, _ in _numbered_groups(units, packing_state, graph)
        for u in members
    }


def renumbered_state(units: Sequence[PackableUnit],
                     packing_state: Mapping[str, PackingState],
                     graph: ConnectionGraph) -> Dict[str, PackingState]:
    """Copy of ``packing_state`` with each unit's box number set to its derived one."""
    numbers = box_numbers(units, packing_state, graph)
    updated = dict(packing_state)
    for uid, n in numbers.items():
        state = packing_state[uid]
        if n != state.box_number:
            updated[uid] = PackingState(quantity=state.quantity, box_number=n)
    return updated
