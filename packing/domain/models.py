# packing/domain/models.py
"""
Plain data types shared by the packing engine.

Units are immutable once split; only their PackingState changes. Boxes are
always derived and never edited by hand.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class OrderLineItem:
    """One ordered product line, as fetched from the order source."""

    item_id: str
    catalog_number: Optional[str]
    description: Optional[str]
    ordered_quantity: int
    unit_price: float = 0.0
    line_id: Optional[str] = None  # falls back to item_id
    unit_weight: Optional[float] = None  # kg per unit, if known

    @property
    def key(self) -> str:
        """Identifier unit ids are derived from."""
        return str(self.line_id or self.item_id)


@dataclass(frozen=True)
class PackableUnit:
    """The atomic row an operator packs; a whole line or one split fragment."""

    unit_id: str
    source_item_id: str
    catalog_number: Optional[str]
    unit_quantity: int
    is_split: bool = False
    split_index: Optional[int] = None  # 1-based, only when is_split
    split_total: Optional[int] = None
    description: Optional[str] = None
    max_per_box: Optional[int] = None
    unit_weight: Optional[float] = None

    @property
    def box_label(self) -> Optional[str]:
        if not self.is_split:
            return None
        label = f"Box {self.split_index}/{self.split_total}"
        if self.max_per_box and self.unit_quantity < self.max_per_box:
            label += " (Partial)"
        return label


@dataclass(frozen=True)
class PackingState:
    quantity: int
    box_number: int


@dataclass(frozen=True)
class Connection:
    """Undirected 'same box' link between two units."""

    id: str
    from_unit: str
    to_unit: str

    @property
    def pair(self) -> frozenset:
        return frozenset((self.from_unit, self.to_unit))

    def other(self, unit_id: str) -> str:
        return self.to_unit if unit_id == self.from_unit else self.from_unit


@dataclass(frozen=True)
class BoxItem:
    unit_id: str
    catalog_number: Optional[str]
    quantity: int
    description: Optional[str] = None
    is_split: bool = False
    split_index: Optional[int] = None
    split_total: Optional[int] = None


@dataclass(frozen=True)
class Box:
    """
    A derived shipping box.

    ``items`` only lists units with a packed quantity; ``unit_ids`` keeps every
    member of the box, including zero-quantity ones, so the grouping can be
    restored from a draft.
    """

    box_number: int
    items: List[BoxItem] = field(default_factory=list)
    total_weight: Optional[float] = None
    unit_ids: List[str] = field(default_factory=list)

    @property
    def total_quantity(self) -> int:
        return sum(i.quantity for i in self.items)
