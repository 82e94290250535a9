# packing/services/splitter.py
"""Split order lines into box-sized packable units."""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from packing.core.errors import InvalidInputError
from packing.domain.models import OrderLineItem, PackableUnit, PackingState
from packing.services.capacity import CapacityResolver

logger = logging.getLogger(__name__)


def split_unit_id(line_key: str, split_index: int) -> str:
    return f"{line_key}_split_{split_index}"


def split_item(item: OrderLineItem, max_capacity: Optional[int]) -> List[PackableUnit]:
    """
    Expand one line into units no larger than ``max_capacity``.

    ``None`` (or a non-positive capacity) leaves the line whole. Otherwise the
    line becomes ``floor(q / cap)`` full units plus one remainder unit, all
    carrying the same ``split_total``.
    """
    qty = int(item.ordered_quantity)
    if qty <= 0:
        raise InvalidInputError(
            f"Order line {item.key} has non-positive ordered quantity {item.ordered_quantity}"
        )

    common = dict(
        source_item_id=str(item.item_id),
        catalog_number=item.catalog_number,
        description=item.description,
        unit_weight=item.unit_weight,
    )

    if max_capacity is not None and max_capacity <= 0:
        logger.warning("Ignoring invalid max-per-box %s for line %s", max_capacity, item.key)
        max_capacity = None

    if max_capacity is None or qty <= max_capacity:
        return [PackableUnit(unit_id=item.key, unit_quantity=qty, is_split=False,
                             max_per_box=max_capacity, **common)]

    full_boxes, remainder = divmod(qty, max_capacity)
    total_boxes = full_boxes + (1 if remainder > 0 else 0)

    units = [
        PackableUnit(
            unit_id=split_unit_id(item.key, i),
            unit_quantity=max_capacity,
            is_split=True,
            split_index=i,
            split_total=total_boxes,
            max_per_box=max_capacity,
            **common,
        )
        for i in range(1, full_boxes + 1)
    ]
    if remainder > 0:
        units.append(
            PackableUnit(
                unit_id=split_unit_id(item.key, total_boxes),
                unit_quantity=remainder,
                is_split=True,
                split_index=total_boxes,
                split_total=total_boxes,
                max_per_box=max_capacity,
                **common,
            )
        )

    logger.debug("Split line %s: %d units into %d boxes (max %d)", item.key, qty, total_boxes, max_capacity)
    return units


def split_items(items: Iterable[OrderLineItem], resolver: CapacityResolver) -> List[PackableUnit]:
    """Split every line of an order, keeping order-list order."""
    items = list(items)
    units: List[PackableUnit] = []
    split_count = 0
    for item in items:
        produced = split_item(item, resolver.resolve(item.catalog_number, item.item_id))
        if produced[0].is_split:
            split_count += 1
        units.extend(produced)

    seen: set[str] = set()
    for u in units:
        if u.unit_id in seen:
            raise InvalidInputError(f"Duplicate unit id {u.unit_id!r}; order lines need distinct line ids")
        seen.add(u.unit_id)

    logger.info("Splitting complete: %d lines -> %d units (%d lines split)", len(items), len(units), split_count)
    return units


def initial_packing_state(units: Iterable[PackableUnit]) -> Dict[str, PackingState]:
    """Full quantity, one box per unit, numbered in order."""
    return {
        u.unit_id: PackingState(quantity=u.unit_quantity, box_number=idx)
        for idx, u in enumerate(units, start=1)
    }
