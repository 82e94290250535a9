# packing/services/capacity.py
"""
Max-per-box capacity lookup and the settings that feed it.

A capacity of ``None`` means "unbounded": the line is never split.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from packing.db.models import MaxPerBoxSetting

logger = logging.getLogger(__name__)


class CapacityResolver:
    """
    Resolves max-per-box capacities from settings fetched once per session.

    Lookup goes by catalog number first, then by upstream item id.
    Non-positive capacities are treated as missing.
    """

    def __init__(self, settings: Iterable[MaxPerBoxSetting] = ()):
        self._by_catalog: dict[str, int] = {}
        self._by_item: dict[str, int] = {}
        for s in settings:
            if getattr(s, "is_active", None) is False:
                continue
            qty = int(s.max_quantity or 0)
            if qty <= 0:
                logger.warning("Ignoring non-positive max-per-box %s for %s", qty, s.catalog_number)
                continue
            if s.catalog_number:
                self._by_catalog[str(s.catalog_number)] = qty
            if getattr(s, "item_id", None):
                self._by_item.setdefault(str(s.item_id), qty)

    @classmethod
    def from_mapping(cls, capacities: dict[str, int]) -> "CapacityResolver":
        """Build a resolver straight from ``{catalog_number: max_quantity}``."""
        return cls(
            MaxPerBoxSetting(catalog_number=cat, max_quantity=qty, is_active=True)
            for cat, qty in capacities.items()
        )

    @classmethod
    def load(cls, db: Session) -> "CapacityResolver":
        """
        Fetch every active setting in one round trip.
        A failed lookup must not block packing: log it and go unbounded.
        """
        try:
            settings = list_settings(db)
        except SQLAlchemyError:
            logger.exception("Capacity settings lookup failed; packing without max-per-box limits")
            return cls()
        logger.debug("Loaded %d max-per-box settings", len(settings))
        return cls(settings)

    def resolve(self, catalog_number: Optional[str], item_id: Optional[str] = None) -> Optional[int]:
        if catalog_number and catalog_number in self._by_catalog:
            return self._by_catalog[catalog_number]
        if item_id is not None:
            return self._by_item.get(str(item_id))
        return None

    def __len__(self) -> int:
        return len(self._by_catalog)


# ---------------------------------------------------------------------
# Settings CRUD
# ---------------------------------------------------------------------

def list_settings(db: Session, *, active_only: bool = True) -> list[MaxPerBoxSetting]:
    stmt = select(MaxPerBoxSetting).order_by(MaxPerBoxSetting.catalog_number)
    if active_only:
        stmt = stmt.where(MaxPerBoxSetting.is_active == True)  # noqa: E712
    return list(db.execute(stmt).scalars().all())


def get_setting_by_catalog(db: Session, catalog_number: str) -> Optional[MaxPerBoxSetting]:
    stmt = select(MaxPerBoxSetting).where(
        MaxPerBoxSetting.catalog_number == catalog_number,
        MaxPerBoxSetting.is_active == True,  # noqa: E712
    )
    return db.execute(stmt).scalar_one_or_none()


def upsert_setting(db: Session, *, catalog_number: str, max_quantity: int,
                   description: Optional[str] = None,
                   item_id: Optional[str] = None) -> MaxPerBoxSetting:
    """Create the setting or update (and re-activate) the existing one."""
    if int(max_quantity) <= 0:
        raise ValueError("max_quantity must be positive")

    existing = db.execute(
        select(MaxPerBoxSetting).where(MaxPerBoxSetting.catalog_number == catalog_number)
    ).scalar_one_or_none()

    if existing:
        existing.max_quantity = int(max_quantity)
        existing.description = description or existing.description
        existing.item_id = item_id if item_id is not None else existing.item_id
        existing.is_active = True
        existing.updated_at = datetime.utcnow()
        db.flush()
        return existing

    s = MaxPerBoxSetting(
        catalog_number=catalog_number,
        max_quantity=int(max_quantity),
        description=description,
        item_id=item_id,
        is_active=True,
    )
    db.add(s)
    db.flush()
    return s


def bulk_upsert_settings(db: Session, rows: Iterable[dict]) -> list[MaxPerBoxSetting]:
    return [upsert_setting(db, **row) for row in rows]


def update_setting(db: Session, setting_id: int, **fields) -> MaxPerBoxSetting:
    s = db.get(MaxPerBoxSetting, setting_id)
    if not s:
        raise LookupError("max-per-box setting not found")
    if fields.get("max_quantity") is not None and int(fields["max_quantity"]) <= 0:
        raise ValueError("max_quantity must be positive")
    for k, v in fields.items():
        if v is not None and hasattr(s, k):
            setattr(s, k, v)
    s.updated_at = datetime.utcnow()
    db.flush()
    return s


def deactivate_setting(db: Session, setting_id: int) -> MaxPerBoxSetting:
    """Soft delete: the row stays but no longer resolves."""
    s = db.get(MaxPerBoxSetting, setting_id)
    if not s:
        raise LookupError("max-per-box setting not found")
    s.is_active = False
    s.updated_at = datetime.utcnow()
    db.flush()
    return s
