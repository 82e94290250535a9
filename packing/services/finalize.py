# packing/services/finalize.py
"""
Finalizing a pack: the session's boxes become packing details, the order moves
to ``packed_pending_labels`` and the draft is dropped.

After that, labels are built from the stored details rather than from a live
session.
"""
from __future__ import annotations

import logging
from datetime import datetime
from itertools import groupby
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from packing.core.errors import InvalidInputError
from packing.db.models import DraftBox, DraftUnitState, PackingDetail
from packing.domain.models import Box, BoxItem
from packing.services import orders as order_svc
from packing.services.session import PackingSession, SessionRegistry

logger = logging.getLogger(__name__)


def _detail_rows(session: PackingSession, packed_by: Optional[str]) -> List[PackingDetail]:
    rows = []
    for box in session.boxes:
        for item in box.items:
            unit = session.unit(item.unit_id)
            rows.append(PackingDetail(
                order_no=session.order_no,
                unit_id=unit.unit_id,
                item_id=unit.source_item_id,
                catalog_number=unit.catalog_number,
                description=unit.description,
                unit_quantity=unit.unit_quantity,
                packed_quantity=item.quantity,
                box_number=box.box_number,
                is_split=unit.is_split,
                split_index=unit.split_index,
                split_total=unit.split_total,
                box_weight=box.total_weight,
                packed_by=packed_by,
            ))
    return rows


def finalize_pack(db: Session, registry: SessionRegistry, session: PackingSession, *,
                  packed_by: Optional[str] = None) -> List[PackingDetail]:
    """
    Confirm the session's boxes as the order's packing.

    Details replace any earlier finalization of the same order. The status
    change, the details and the draft removal are one transaction; the
    session is closed afterwards.
    """
    order_no = session.order_no
    with session.lock:
        if not session.boxes:
            raise InvalidInputError(f"Order {order_no} has nothing packed")
        order = order_svc.get_order(db, order_no)
        rows = _detail_rows(session, packed_by)
        try:
            db.execute(delete(PackingDetail).where(PackingDetail.order_no == order_no))
            db.add_all(rows)
            order.status = order_svc.STATUS_PACKED
            order.packed_at = datetime.utcnow()
            order.packed_by = packed_by
            db.execute(delete(DraftBox).where(DraftBox.order_no == order_no))
            db.execute(delete(DraftUnitState).where(DraftUnitState.order_no == order_no))
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        session.dirty = False

    registry.close(order_no)
    logger.info("Order %s finalized: %d boxes, %d packed units", order_no, len(session.boxes), len(rows))
    return rows


def load_packing_details(db: Session, order_no: str) -> List[PackingDetail]:
    return list(db.execute(
        select(PackingDetail)
        .where(PackingDetail.order_no == order_no)
        .order_by(PackingDetail.box_number, PackingDetail.id)
    ).scalars().all())


def load_packed_boxes(db: Session, order_no: str) -> List[Box]:
    """Boxes of a finalized order, numbered as they were packed."""
    boxes = []
    for box_number, rows in groupby(load_packing_details(db, order_no), key=lambda r: r.box_number):
        rows = list(rows)
        boxes.append(Box(
            box_number=box_number,
            items=[
                BoxItem(
                    unit_id=r.unit_id,
                    catalog_number=r.catalog_number,
                    quantity=r.packed_quantity,
                    description=r.description,
                    is_split=bool(r.is_split),
                    split_index=r.split_index,
                    split_total=r.split_total,
                )
                for r in rows
            ],
            total_weight=rows[0].box_weight,
            unit_ids=[r.unit_id for r in rows],
        ))
    return boxes
