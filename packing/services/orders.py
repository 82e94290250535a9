# packing/services/orders.py
from datetime import datetime
from typing import Dict, Iterable, List, Optional
from sqlalchemy.orm import Session

from packing.db.models import Order, OrderLine
from packing.domain.models import OrderLineItem

STATUS_PENDING = "pending"
STATUS_PACKING = "packing"
STATUS_PACKED = "packed_pending_labels"
STATUS_LABELS_PRINTED = "labels_printed"
STATUS_COMPLETED = "completed"
ORDER_STATUSES = (STATUS_PENDING, STATUS_PACKING, STATUS_PACKED, STATUS_LABELS_PRINTED, STATUS_COMPLETED)


def _to_float_round(x, digits: int = 3) -> Optional[float]:
    """Convert to float with 3 decimal places, keeping None."""
    if x is None:
        return None
    try:
        return round(float(x), digits)
    except (TypeError, ValueError):
        return None


def create_order(db: Session, order_no: str, *, customer_name: Optional[str] = None,
                 ship_to: Optional[str] = None, due_date=None,
                 lines: Iterable[Dict] = ()) -> tuple[Order, bool]:
    """
    Import an order header + lines into the app DB.
    Idempotent by order_no: an existing order is returned untouched.
    Returns (order, created).
    """
    order = db.query(Order).filter(Order.order_no == order_no).one_or_none()
    if order:
        return order, False

    lines = list(lines)
    for ln in lines:
        if int(ln.get("qty_ordered") or 0) <= 0:
            raise ValueError(f"Line {ln.get('item_id')} of order {order_no} has no ordered quantity")

    order = Order(
        order_no=str(order_no),
        customer_name=customer_name,
        ship_to=ship_to,
        due_date=due_date,
        status=STATUS_PENDING,
    )
    db.add(order)
    db.flush()  # populate order.id

    for ln in lines:
        db.add(OrderLine(
            order_id=order.id,
            item_id=str(ln.get("item_id")),
            catalog_number=ln.get("catalog_number"),
            description=ln.get("description"),
            qty_ordered=int(ln["qty_ordered"]),
            unit_price=_to_float_round(ln.get("unit_price"), 2) or 0.0,
            unit_weight=_to_float_round(ln.get("unit_weight")),
        ))

    db.commit()
    db.refresh(order)
    return order, True


def get_order(db: Session, order_no: str) -> Order:
    order = db.query(Order).filter(Order.order_no == order_no).one_or_none()
    if not order:
        raise LookupError(f"Order {order_no} not found")
    return order


def get_line_items(db: Session, order_no: str) -> List[OrderLineItem]:
    """Order lines in order-list order, as engine input."""
    order = get_order(db, order_no)
    rows = (
        db.query(OrderLine)
        .filter(OrderLine.order_id == order.id)
        .order_by(OrderLine.id.asc())
        .all()
    )
    return [
        OrderLineItem(
            item_id=ln.item_id,
            catalog_number=ln.catalog_number,
            description=ln.description,
            ordered_quantity=int(ln.qty_ordered),
            unit_price=float(ln.unit_price or 0.0),
            # order prefix keeps unit ids unique across orders
            line_id=f"{order.order_no}_{ln.id}",
            unit_weight=ln.unit_weight,
        )
        for ln in rows
    ]


def start_packing(db: Session, order_no: str) -> Order:
    """Move a pending order to packing. Later stages are left as they are."""
    order = get_order(db, order_no)
    if order.status == STATUS_PENDING:
        order.status = STATUS_PACKING
        db.commit()
    return order


def mark_labels_printed(db: Session, order_no: str) -> Order:
    order = get_order(db, order_no)
    if order.status == STATUS_PACKED:
        order.status = STATUS_LABELS_PRINTED
        order.labels_printed_at = datetime.utcnow()
        db.commit()
    return order


def complete_order(db: Session, order_no: str) -> Order:
    order = get_order(db, order_no)
    if order.status != STATUS_LABELS_PRINTED:
        raise ValueError(f"Order {order_no} is {order.status}; labels must be printed before completing")
    order.status = STATUS_COMPLETED
    db.commit()
    return order
