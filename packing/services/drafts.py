# packing/services/drafts.py
"""
Draft persistence for in-progress packing, and restoring a draft onto freshly
split units.

Two drafts are kept per order: the per-unit state map and the derived box
list. The box list is written after the latest edits, so on restore it wins
over the state map.
"""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from packing.db.models import DraftBox, DraftUnitState
from packing.domain.models import Box, BoxItem, PackableUnit, PackingState
from packing.services.box_assigner import assign_boxes
from packing.services.connections import ConnectionGraph
from packing.services.splitter import initial_packing_state

logger = logging.getLogger(__name__)


class DraftStore:
    """SQLAlchemy-backed draft storage keyed by order number."""

    def __init__(self, db: Session):
        self.db = db

    # --- packing state map ---
    def save_draft_state(self, order_no: str, packing_state: Mapping[str, PackingState]) -> None:
        now = datetime.utcnow()
        try:
            self.db.execute(delete(DraftUnitState).where(DraftUnitState.order_no == order_no))
            self.db.add_all(
                DraftUnitState(
                    order_no=order_no,
                    unit_id=unit_id,
                    quantity=int(state.quantity),
                    box_number=int(state.box_number),
                    updated_at=now,
                )
                for unit_id, state in packing_state.items()
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def load_draft_state(self, order_no: str) -> Dict[str, PackingState]:
        rows = self.db.execute(
            select(DraftUnitState).where(DraftUnitState.order_no == order_no)
        ).scalars().all()
        return {
            r.unit_id: PackingState(quantity=int(r.quantity or 0), box_number=int(r.box_number or 1))
            for r in rows
        }

    # --- box list ---
    def save_draft_boxes(self, order_no: str, boxes: Sequence[Box]) -> None:
        now = datetime.utcnow()
        try:
            self.db.execute(delete(DraftBox).where(DraftBox.order_no == order_no))
            self.db.add_all(
                DraftBox(
                    order_no=order_no,
                    box_number=int(b.box_number),
                    items_json=json.dumps([asdict(i) for i in b.items]),
                    unit_ids_json=json.dumps(list(b.unit_ids)),
                    total_weight=b.total_weight,
                    updated_at=now,
                )
                for b in boxes
            )
            self.db.commit()
            logger.info("Saved %d draft boxes for order %s", len(boxes), order_no)
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def load_draft_boxes(self, order_no: str) -> List[Box]:
        rows = self.db.execute(
            select(DraftBox).where(DraftBox.order_no == order_no).order_by(DraftBox.box_number)
        ).scalars().all()
        return [_box_from_row(r) for r in rows]

    def clear_draft(self, order_no: str) -> None:
        try:
            self.db.execute(delete(DraftBox).where(DraftBox.order_no == order_no))
            self.db.execute(delete(DraftUnitState).where(DraftUnitState.order_no == order_no))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise


def _loads_list(raw: Optional[str]) -> list:
    try:
        value = json.loads(raw or "[]")
    except ValueError:
        return []
    return value if isinstance(value, list) else []


def _box_from_row(row: DraftBox) -> Box:
    items = []
    for d in _loads_list(row.items_json):
        if not isinstance(d, dict) or "unit_id" not in d:
            continue
        items.append(BoxItem(
            unit_id=str(d["unit_id"]),
            catalog_number=d.get("catalog_number"),
            quantity=int(d.get("quantity") or 0),
            description=d.get("description"),
            is_split=bool(d.get("is_split", False)),
            split_index=d.get("split_index"),
            split_total=d.get("split_total"),
        ))
    return Box(
        box_number=int(row.box_number),
        items=items,
        total_weight=row.total_weight,
        unit_ids=[str(u) for u in _loads_list(row.unit_ids_json)],
    )


# ---------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------

@dataclass
class RestoredDraft:
    packing_state: Dict[str, PackingState]
    graph: ConnectionGraph
    source: str  # "boxes" | "state" | "initial"


def _clamp(quantity: int, unit: PackableUnit) -> int:
    return max(0, min(int(quantity), unit.unit_quantity))


def _fill_missing(units: Sequence[PackableUnit], state: Dict[str, PackingState],
                  restored: set[str]) -> None:
    """Units the draft doesn't know get full quantity in a box of their own."""
    next_box = max((state[uid].box_number for uid in restored), default=0) + 1
    for u in units:
        if u.unit_id in restored:
            continue
        state[u.unit_id] = PackingState(quantity=u.unit_quantity, box_number=next_box)
        next_box += 1


def reconcile_draft(units: Sequence[PackableUnit],
                    draft_boxes: Sequence[Box] = (),
                    draft_state: Optional[Mapping[str, PackingState]] = None) -> RestoredDraft:
    """
    Rebuild packing state and connections for ``units`` from saved drafts.

    Draft boxes win over the state map. Each multi-unit box is re-linked as a
    chain of edges, which restores the grouping but not the exact edges the
    operator drew. Units that are in no saved box (nothing of theirs packed)
    take their entry from the state map. Draft entries for unknown units are
    dropped.
    """
    by_id = {u.unit_id: u for u in units}
    state = initial_packing_state(units)
    graph = ConnectionGraph()

    if draft_boxes:
        restored: set[str] = set()
        for box in draft_boxes:
            quantities = {i.unit_id: i.quantity for i in box.items}
            members = list(box.unit_ids) or list(quantities)
            known = []
            for uid in members:
                unit = by_id.get(uid)
                if unit is None:
                    logger.debug("Dropping draft entry for unknown unit %s", uid)
                    continue
                if uid in restored:
                    continue
                state[uid] = PackingState(quantity=_clamp(quantities.get(uid, 0), unit),
                                          box_number=int(box.box_number))
                restored.add(uid)
                known.append(uid)
            for a, b in zip(known, known[1:]):
                graph.add_edge(a, b)
        taken = {state[uid].box_number for uid in restored}
        for uid, saved in (draft_state or {}).items():
            unit = by_id.get(uid)
            if unit is None or uid in restored or saved.quantity > 0 or saved.box_number in taken:
                continue
            state[uid] = PackingState(quantity=0, box_number=max(1, int(saved.box_number)))
            restored.add(uid)
        _fill_missing(units, state, restored)
        return RestoredDraft(state, graph, "boxes")

    if draft_state:
        restored = set()
        for uid, saved in draft_state.items():
            unit = by_id.get(uid)
            if unit is None:
                logger.debug("Dropping draft state for unknown unit %s", uid)
                continue
            state[uid] = PackingState(quantity=_clamp(saved.quantity, unit),
                                      box_number=max(1, int(saved.box_number)))
            restored.add(uid)
        _fill_missing(units, state, restored)
        return RestoredDraft(state, graph, "state")

    return RestoredDraft(state, graph, "initial")


def restore_session_state(store: DraftStore, order_no: str,
                          units: Sequence[PackableUnit]) -> RestoredDraft:
    """
    Load drafts for ``order_no`` and reconcile them onto ``units``.

    A failed load counts as "no draft". When nothing was saved yet the fresh
    defaults are persisted right away so the next reload has a draft.
    """
    try:
        draft_boxes = store.load_draft_boxes(order_no)
    except SQLAlchemyError:
        logger.exception("Loading draft boxes for order %s failed; ignoring", order_no)
        draft_boxes = []

    draft_state: Dict[str, PackingState] = {}
    try:
        draft_state = store.load_draft_state(order_no)
    except SQLAlchemyError:
        logger.exception("Loading draft state for order %s failed; ignoring", order_no)

    restored = reconcile_draft(units, draft_boxes, draft_state)
    logger.info("Order %s: packing state restored from %s", order_no, restored.source)

    if restored.source == "initial":
        try:
            store.save_draft_state(order_no, restored.packing_state)
            store.save_draft_boxes(order_no, assign_boxes(units, restored.packing_state, restored.graph))
        except SQLAlchemyError:
            logger.exception("Saving initial draft for order %s failed", order_no)

    return restored
