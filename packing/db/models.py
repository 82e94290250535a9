from datetime import datetime

from sqlalchemy import (
    Integer, String, Date, DateTime, ForeignKey, UniqueConstraint,
    CheckConstraint, Float, Boolean, Text
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from packing.db.session import AppBase as Base


class Order(Base):
    __tablename__ = "order"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_no: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(Date, nullable=True)
    ship_to: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # pending | packing | packed_pending_labels | labels_printed | completed
    status: Mapped[str] = mapped_column(String(32), default="pending")
    packed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    packed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    labels_printed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    lines: Mapped[list["OrderLine"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLine.id",
    )


class OrderLine(Base):
    __tablename__ = "order_line"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("order.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    item_id: Mapped[str] = mapped_column(String(50), index=True)  # upstream item id
    catalog_number: Mapped[str | None] = mapped_column(String(50), index=True, nullable=True)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    qty_ordered: Mapped[int] = mapped_column(Integer)
    unit_price: Mapped[float] = mapped_column(Float, default=0.0)
    unit_weight: Mapped[float | None] = mapped_column(Float, nullable=True)  # kg per unit

    __table_args__ = (
        CheckConstraint("qty_ordered > 0", name="ck_order_line_qty_pos"),
    )

    # relation back to Order
    order: Mapped["Order"] = relationship(back_populates="lines")


class MaxPerBoxSetting(Base):
    __tablename__ = "max_per_box_setting"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    catalog_number: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    max_quantity: Mapped[int] = mapped_column(Integer)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    item_id: Mapped[str | None] = mapped_column(String(50), nullable=True)  # upstream item id match
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("max_quantity > 0", name="ck_max_per_box_qty_pos"),
    )


class DraftBox(Base):
    __tablename__ = "draft_box"
    __table_args__ = (
        UniqueConstraint("order_no", "box_number", name="uq_draft_box_order_boxno"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_no: Mapped[str] = mapped_column(String(64), index=True)
    box_number: Mapped[int] = mapped_column(Integer, nullable=False)
    items_json: Mapped[str] = mapped_column(Text, default="[]")  # [{unit_id, catalog_number, quantity, ...}]
    unit_ids_json: Mapped[str] = mapped_column(Text, default="[]")  # every member incl. zero-qty units
    total_weight: Mapped[float | None] = mapped_column(Float, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class DraftUnitState(Base):
    __tablename__ = "draft_unit_state"
    __table_args__ = (
        UniqueConstraint("order_no", "unit_id", name="uq_draft_unit_state"),
        CheckConstraint("quantity >= 0", name="ck_draft_unit_qty_nonneg"),
        CheckConstraint("box_number >= 1", name="ck_draft_unit_box_pos"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_no: Mapped[str] = mapped_column(String(64), index=True)
    unit_id: Mapped[str] = mapped_column(String(128))
    quantity: Mapped[int] = mapped_column(Integer)
    box_number: Mapped[int] = mapped_column(Integer)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class PackingDetail(Base):
    """One packed unit of a finalized order: what went into which box."""
    __tablename__ = "packing_detail"
    __table_args__ = (
        UniqueConstraint("order_no", "unit_id", name="uq_packing_detail_unit"),
        CheckConstraint("packed_quantity > 0", name="ck_packing_detail_qty_pos"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_no: Mapped[str] = mapped_column(String(64), index=True)
    unit_id: Mapped[str] = mapped_column(String(128))
    item_id: Mapped[str] = mapped_column(String(50))
    catalog_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    unit_quantity: Mapped[int] = mapped_column(Integer)
    packed_quantity: Mapped[int] = mapped_column(Integer)
    box_number: Mapped[int] = mapped_column(Integer)
    is_split: Mapped[bool] = mapped_column(Boolean, default=False)
    split_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    split_total: Mapped[int | None] = mapped_column(Integer, nullable=True)
    box_weight: Mapped[float | None] = mapped_column(Float, nullable=True)
    packed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
