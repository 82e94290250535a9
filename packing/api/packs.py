# packing/api/packs.py
"""
Packing session endpoints.

Every edit returns the fresh snapshot (units, state, connections, boxes) so
the UI never shows a stale box list. With ``DRAFT_AUTOSAVE`` on, each edit is
also flushed to the draft tables; otherwise the client calls ``/flush``.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from packing.core.config import get_settings
from packing.core.errors import InvalidInputError, SessionNotFoundError, UnknownUnitError
from packing.db.session import get_app_session as get_db
from packing.deps import get_draft_store, get_packing_session, get_registry
from packing.domain.models import Box
from packing.services import finalize as finalize_svc
from packing.services import orders as order_svc
from packing.services.drafts import DraftStore
from packing.services.labels import get_box_label_data
from packing.services.session import PackingSession, SessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/pack", tags=["pack"])


# ---------------------------------------------------------------------
# Input models
# ---------------------------------------------------------------------
class QuantityIn(BaseModel):
    quantity: int


class BoxNumberIn(BaseModel):
    box_number: int


class ConnectionIn(BaseModel):
    from_unit: str = Field(min_length=1)
    to_unit: str = Field(min_length=1)


# ---------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------
def _box_dict(b: Box) -> Dict:
    return {
        "box_number": b.box_number,
        "unit_ids": list(b.unit_ids),
        "total_weight": b.total_weight,
        "total_quantity": b.total_quantity,
        "items": [
            {
                "unit_id": i.unit_id,
                "catalog_number": i.catalog_number,
                "description": i.description,
                "quantity": i.quantity,
                "is_split": i.is_split,
                "split_index": i.split_index,
                "split_total": i.split_total,
            }
            for i in b.items
        ],
    }


def get_session_snapshot(session: PackingSession) -> Dict:
    with session.lock:
        return _snapshot(session)


def _snapshot(session: PackingSession) -> Dict:
    units = []
    for u in session.units:
        state = session.packing_state[u.unit_id]
        units.append({
            "unit_id": u.unit_id,
            "source_item_id": u.source_item_id,
            "catalog_number": u.catalog_number,
            "description": u.description,
            "unit_quantity": u.unit_quantity,
            "is_split": u.is_split,
            "split_index": u.split_index,
            "split_total": u.split_total,
            "box_label": u.box_label,
            "max_per_box": u.max_per_box,
            "quantity": state.quantity,
            "box_number": state.box_number,
            "connected": session.graph.is_connected(u.unit_id),
        })

    return {
        "order_no": session.order_no,
        "dirty": session.dirty,
        "units": units,
        "connections": [
            {"id": c.id, "from_unit": c.from_unit, "to_unit": c.to_unit}
            for c in session.graph.connections
        ],
        "boxes": [_box_dict(b) for b in session.boxes],
        "summary": session.summary(),
    }


def _after_edit(session: PackingSession, store: DraftStore) -> Dict:
    if get_settings().DRAFT_AUTOSAVE:
        session.flush(store)
    return get_session_snapshot(session)


# ---------------------------------------------------------------------
# Open / read / close
# ---------------------------------------------------------------------
@router.post("/{order_no}/open")
def open_pack(
    order_no: str,
    reload: bool = False,
    db: Session = Depends(get_db),
    registry: SessionRegistry = Depends(get_registry),
):
    """
    Open (or reuse) the packing session for an order: split its lines by
    max-per-box, then restore the latest draft.
    """
    try:
        session = registry.open(db, order_no, reload=reload)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidInputError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if session.units:
        try:
            order_svc.start_packing(db, order_no)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Could not mark order %s in progress", order_no)
    return get_session_snapshot(session)


@router.get("/{order_no}")
def get_pack(session: PackingSession = Depends(get_packing_session)):
    return get_session_snapshot(session)


@router.post("/{order_no}/flush")
def flush_pack(
    session: PackingSession = Depends(get_packing_session),
    store: DraftStore = Depends(get_draft_store),
):
    """Persist the current state map and boxes as the order's draft."""
    saved = session.flush(store)
    return {"saved": saved, "dirty": session.dirty}


@router.post("/{order_no}/close")
def close_pack(
    order_no: str,
    registry: SessionRegistry = Depends(get_registry),
    store: DraftStore = Depends(get_draft_store),
):
    closed = registry.close(order_no, store)
    return {"closed": closed}


@router.delete("/{order_no}/draft")
def clear_draft(
    order_no: str,
    registry: SessionRegistry = Depends(get_registry),
    store: DraftStore = Depends(get_draft_store),
):
    """Drop the saved draft to start over; an open session is discarded too."""
    registry.close(order_no)
    store.clear_draft(order_no)
    return {"message": "Draft cleared"}


# ---------------------------------------------------------------------
# Edits
# ---------------------------------------------------------------------
@router.post("/{order_no}/units/{unit_id}/quantity")
def set_quantity(
    unit_id: str,
    body: QuantityIn,
    session: PackingSession = Depends(get_packing_session),
    store: DraftStore = Depends(get_draft_store),
):
    """Set the packed quantity of a unit; out-of-range values are clamped."""
    try:
        session.set_quantity(unit_id, body.quantity)
    except UnknownUnitError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _after_edit(session, store)


@router.post("/{order_no}/units/{unit_id}/box")
def set_box_number(
    unit_id: str,
    body: BoxNumberIn,
    session: PackingSession = Depends(get_packing_session),
    store: DraftStore = Depends(get_draft_store),
):
    """Move a unit under a box number; boxes are renumbered afterwards."""
    try:
        session.set_box_number(unit_id, body.box_number)
    except UnknownUnitError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _after_edit(session, store)


@router.post("/{order_no}/connections")
def add_connection(
    body: ConnectionIn,
    session: PackingSession = Depends(get_packing_session),
    store: DraftStore = Depends(get_draft_store),
):
    """
    Link two units into one box. Linking a unit to itself or re-linking an
    existing pair changes nothing.
    """
    try:
        session.connect(body.from_unit, body.to_unit)
    except UnknownUnitError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _after_edit(session, store)


@router.delete("/{order_no}/connections/{connection_id}")
def remove_connection(
    connection_id: str,
    session: PackingSession = Depends(get_packing_session),
    store: DraftStore = Depends(get_draft_store),
):
    """
    Remove a connection. Both units keep the box number they shared, so they
    stay in one box until one of them is moved to another box number.
    """
    session.disconnect(connection_id)
    return _after_edit(session, store)


# ---------------------------------------------------------------------
# Downstream consumers
# ---------------------------------------------------------------------
class FinalizeIn(BaseModel):
    packed_by: Optional[str] = Field(default=None, max_length=100)


@router.post("/{order_no}/finalize")
def finalize(
    body: Optional[FinalizeIn] = None,
    session: PackingSession = Depends(get_packing_session),
    registry: SessionRegistry = Depends(get_registry),
    db: Session = Depends(get_db),
):
    """
    Confirm the pack: store what went into which box, move the order to
    packed_pending_labels, drop the draft and close the session.
    """
    summary = session.summary()
    try:
        finalize_svc.finalize_pack(db, registry, session, packed_by=body.packed_by if body else None)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))

    order = order_svc.get_order(db, session.order_no)
    return {
        "order_no": order.order_no,
        "status": order.status,
        "boxes": [_box_dict(b) for b in finalize_svc.load_packed_boxes(db, order.order_no)],
        "summary": summary,
    }


@router.get("/{order_no}/labels")
def get_labels(
    order_no: str,
    registry: SessionRegistry = Depends(get_registry),
    db: Session = Depends(get_db),
) -> List[Dict]:
    """
    Label payloads for every packed box. With a session open they preview its
    boxes; after finalizing they come from the stored packing details and the
    order moves on to labels_printed.
    """
    try:
        order = order_svc.get_order(db, order_no)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))

    try:
        session = registry.get(order_no)
    except SessionNotFoundError:
        boxes = finalize_svc.load_packed_boxes(db, order_no)
    else:
        with session.lock:
            boxes = list(session.boxes)

    if not boxes:
        raise HTTPException(status_code=400, detail="No packed items to label")

    labels = get_box_label_data(order_no, boxes, customer_name=order.customer_name, ship_to=order.ship_to)
    if order.status == order_svc.STATUS_PACKED:
        order_svc.mark_labels_printed(db, order_no)
    return labels
