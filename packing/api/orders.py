# packing/api/orders.py
from datetime import date, datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import or_, desc, func
from sqlalchemy.orm import Session

from packing.db.session import get_app_session
from packing.db.models import Order as OrderModel, OrderLine as OrderLineModel
from packing.services import orders as svc

router = APIRouter(prefix="/api", tags=["orders"])


# ---------------------------
# Pydantic schemas
# ---------------------------
class OrderLineIn(BaseModel):
    item_id: str
    catalog_number: Optional[str] = None
    description: Optional[str] = None
    qty_ordered: int = Field(gt=0)
    unit_price: float = 0.0
    unit_weight: Optional[float] = Field(default=None, ge=0)


class OrderIn(BaseModel):
    order_no: str = Field(min_length=1, max_length=64)
    customer_name: Optional[str] = None
    ship_to: Optional[str] = None
    due_date: Optional[date] = None
    lines: List[OrderLineIn] = Field(default_factory=list)


class OrderLine(BaseModel):
    id: int
    item_id: str
    catalog_number: Optional[str] = None
    description: Optional[str] = None
    qty_ordered: int
    unit_price: float = 0.0
    unit_weight: Optional[float] = None

    class Config:
        from_attributes = True


class Order(BaseModel):
    id: int
    order_no: str
    customer_name: Optional[str] = None
    ship_to: Optional[str] = None
    due_date: Optional[date] = None
    status: Optional[str] = None
    packed_by: Optional[str] = None
    packed_at: Optional[datetime] = None
    labels_printed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    total_lines: int = 0
    total_qty: int = 0

    class Config:
        from_attributes = True


class CreateOrderResponse(BaseModel):
    order: Order
    imported: bool


def _with_totals(db: Session, order: OrderModel) -> Order:
    lines = db.query(OrderLineModel).filter(OrderLineModel.order_id == order.id).all()
    out = Order.model_validate(order)
    out.total_lines = len(lines)
    out.total_qty = sum(int(ln.qty_ordered or 0) for ln in lines)
    return out


# ---------------------------
# Routes
# ---------------------------

@router.post("/orders", response_model=CreateOrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(payload: OrderIn, db: Session = Depends(get_app_session)):
    """
    Import an order with its lines.
    Idempotent: re-posting the same order_no returns the stored order.
    """
    order, created = svc.create_order(
        db,
        payload.order_no,
        customer_name=payload.customer_name,
        ship_to=payload.ship_to,
        due_date=payload.due_date,
        lines=[ln.model_dump() for ln in payload.lines],
    )
    return CreateOrderResponse(order=_with_totals(db, order), imported=created)


@router.get("/orders", response_model=List[Order])
def list_orders(
    q: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 500,
    db: Session = Depends(get_app_session),
):
    """
    Return all matching orders in one shot (no pagination).
    'limit' is a safety cap (default 500, max 2000).
    """
    limit = max(1, min(limit, 2000))

    qry = db.query(OrderModel)
    if q:
        like = f"%{q}%"
        qry = qry.filter(
            or_(
                OrderModel.order_no.ilike(like),
                OrderModel.customer_name.ilike(like),
            )
        )
    if status:
        if status not in svc.ORDER_STATUSES:
            raise HTTPException(status_code=400, detail=f"Unknown status {status!r}")
        qry = qry.filter(OrderModel.status == status)

    items: List[OrderModel] = qry.order_by(desc(OrderModel.created_at), desc(OrderModel.id)).limit(limit).all()
    if not items:
        return []

    order_ids = [int(o.id) for o in items]
    rows = (
        db.query(
            OrderLineModel.order_id,
            func.count(),
            func.coalesce(func.sum(OrderLineModel.qty_ordered), 0),
        )
        .filter(OrderLineModel.order_id.in_(order_ids))
        .group_by(OrderLineModel.order_id)
        .all()
    )
    totals: dict[int, tuple[int, int]] = {int(oid): (int(cnt or 0), int(qty or 0)) for (oid, cnt, qty) in rows}

    result: List[Order] = []
    for o in items:
        out = Order.model_validate(o)
        out.total_lines, out.total_qty = totals.get(int(o.id), (0, 0))
        result.append(out)
    return result


@router.get("/orders/{order_no}", response_model=Order)
def get_order(order_no: str, db: Session = Depends(get_app_session)):
    try:
        order = svc.get_order(db, order_no)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _with_totals(db, order)


@router.get("/orders/{order_no}/lines", response_model=List[OrderLine])
def get_order_lines(order_no: str, db: Session = Depends(get_app_session)):
    try:
        order = svc.get_order(db, order_no)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))

    rows: List[OrderLineModel] = (
        db.query(OrderLineModel)
        .filter(OrderLineModel.order_id == order.id)
        .order_by(OrderLineModel.id.asc())
        .all()
    )
    return [OrderLine.model_validate(ln) for ln in rows]


@router.post("/orders/{order_no}/complete", response_model=Order)
def complete_order(order_no: str, db: Session = Depends(get_app_session)):
    """Close out an order whose labels are printed. Any other stage is a 400."""
    try:
        order = svc.complete_order(db, order_no)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _with_totals(db, order)
