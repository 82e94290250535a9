# packing/services/session.py
"""
One operator's packing session for one order.

The session owns the split units, the per-unit packing state and the
connection graph. Every edit re-derives the box list immediately; persisting
it is an explicit ``flush`` so the host decides how often drafts are written.

Request handlers run in a threadpool, so every edit and its re-derive happen
under the session's ``lock``; readers that need a consistent view take it too.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from packing.core.errors import SessionNotFoundError, UnknownUnitError
from packing.domain.models import Box, Connection, PackableUnit, PackingState
from packing.services.box_assigner import assign_boxes, renumbered_state
from packing.services.capacity import CapacityResolver
from packing.services.connections import ConnectionGraph
from packing.services.drafts import DraftStore, restore_session_state
from packing.services.orders import get_line_items
from packing.services.splitter import initial_packing_state, split_items

logger = logging.getLogger(__name__)

ChangeListener = Callable[["PackingSession"], None]


class PackingSession:
    def __init__(self, order_no: str, units: Sequence[PackableUnit],
                 packing_state: Optional[Dict[str, PackingState]] = None,
                 graph: Optional[ConnectionGraph] = None):
        self.order_no = order_no
        self.units: List[PackableUnit] = list(units)
        self._by_id = {u.unit_id: u for u in self.units}
        state = initial_packing_state(self.units)
        state.update({k: v for k, v in (packing_state or {}).items() if k in self._by_id})
        self.packing_state: Dict[str, PackingState] = state
        self.graph = graph or ConnectionGraph()
        dropped = self.graph.prune(self._by_id)
        if dropped:
            logger.debug("Order %s: dropped %d orphaned connections", order_no, len(dropped))
        self.dirty = False
        self.lock = threading.RLock()
        self._listeners: List[ChangeListener] = []
        self.boxes: List[Box] = []
        self._rederive()

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------
    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a callback run after every edit; returns an unsubscribe function."""
        with self.lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self.lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _rederive(self) -> None:
        self.packing_state = renumbered_state(self.units, self.packing_state, self.graph)
        self.boxes = assign_boxes(self.units, self.packing_state, self.graph)

    def _changed(self) -> None:
        self._rederive()
        self.dirty = True
        for listener in list(self._listeners):
            listener(self)

    def unit(self, unit_id: str) -> PackableUnit:
        try:
            return self._by_id[unit_id]
        except KeyError:
            raise UnknownUnitError(unit_id) from None

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------
    def set_quantity(self, unit_id: str, quantity: int) -> PackingState:
        """Set the packed quantity, clamped to [0, unit_quantity]."""
        unit = self.unit(unit_id)
        clamped = max(0, min(int(quantity), unit.unit_quantity))
        if clamped != quantity:
            logger.debug("Clamped quantity for %s from %s to %s", unit_id, quantity, clamped)
        with self.lock:
            current = self.packing_state[unit_id]
            self.packing_state[unit_id] = PackingState(quantity=clamped, box_number=current.box_number)
            self._changed()
            return self.packing_state[unit_id]

    def set_box_number(self, unit_id: str, box_number: int) -> PackingState:
        """
        Move a unit under another box number. Units sharing a number are
        packed together; the number itself is renumbered afterwards.
        """
        self.unit(unit_id)
        with self.lock:
            current = self.packing_state[unit_id]
            self.packing_state[unit_id] = PackingState(quantity=current.quantity, box_number=max(1, int(box_number)))
            self._changed()
            return self.packing_state[unit_id]

    def connect(self, from_unit: str, to_unit: str) -> Optional[Connection]:
        self.unit(from_unit)
        self.unit(to_unit)
        with self.lock:
            existing = self.graph.find(from_unit, to_unit)
            conn = self.graph.add_edge(from_unit, to_unit)
            if conn is None or conn is existing:
                return conn
            self._changed()
            logger.info("Order %s: connected %s and %s, %d boxes", self.order_no, from_unit, to_unit, len(self.boxes))
            return conn

    def disconnect(self, connection_id: str) -> Optional[Connection]:
        """
        Remove a connection. The two units keep the box number they shared,
        so they stay in one box until one of them is moved with
        ``set_box_number``.
        """
        with self.lock:
            conn = self.graph.remove_edge(connection_id)
            if conn is None:
                return None
            self._changed()
            logger.info("Order %s: removed connection %s, %d boxes", self.order_no, connection_id, len(self.boxes))
            return conn

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    def summary(self) -> Dict:
        """Packed vs ordered per source line, plus box totals."""
        with self.lock:
            lines: Dict[str, Dict] = {}
            for u in self.units:
                line = lines.setdefault(u.source_item_id, {
                    "item_id": u.source_item_id,
                    "catalog_number": u.catalog_number,
                    "ordered": 0,
                    "packed": 0,
                })
                line["ordered"] += u.unit_quantity
                line["packed"] += self.packing_state[u.unit_id].quantity

            return {
                "total_boxes": len(self.boxes),
                "total_units": sum(b.total_quantity for b in self.boxes),
                "fully_packed": all(ln["packed"] >= ln["ordered"] for ln in lines.values()),
                "lines": list(lines.values()),
            }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def flush(self, store: DraftStore) -> bool:
        """
        Write the state map and box list as the order's draft.
        A failed save is logged and leaves the session dirty for the next try.
        """
        with self.lock:
            try:
                store.save_draft_state(self.order_no, self.packing_state)
                store.save_draft_boxes(self.order_no, self.boxes)
            except SQLAlchemyError:
                logger.exception("Saving draft for order %s failed", self.order_no)
                return False
            self.dirty = False
            return True


def open_session(db: Session, order_no: str, store: Optional[DraftStore] = None) -> PackingSession:
    """Load the order, split it by max-per-box capacity and restore any draft."""
    items = get_line_items(db, order_no)
    resolver = CapacityResolver.load(db)
    units = split_items(items, resolver)
    store = store or DraftStore(db)
    restored = restore_session_state(store, order_no, units)
    return PackingSession(order_no, units, restored.packing_state, restored.graph)


class SessionRegistry:
    """Open sessions of the running app, one per order number."""

    def __init__(self):
        self._sessions: Dict[str, PackingSession] = {}
        self._lock = threading.Lock()

    def __contains__(self, order_no: str) -> bool:
        return order_no in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def open(self, db: Session, order_no: str, *, reload: bool = False) -> PackingSession:
        with self._lock:
            if order_no in self._sessions and not reload:
                return self._sessions[order_no]
            session = open_session(db, order_no)
            self._sessions[order_no] = session
            return session

    def get(self, order_no: str) -> PackingSession:
        try:
            return self._sessions[order_no]
        except KeyError:
            raise SessionNotFoundError(order_no) from None

    def flush_all(self, store: DraftStore) -> int:
        """Flush every dirty session; returns how many were saved."""
        with self._lock:
            sessions = list(self._sessions.values())
        return sum(1 for s in sessions if s.dirty and s.flush(store))

    def close(self, order_no: str, store: Optional[DraftStore] = None) -> bool:
        """Drop the session, flushing pending edits first when a store is given."""
        with self._lock:
            session = self._sessions.pop(order_no, None)
        if session is None:
            return False
        if store is not None and session.dirty:
            session.flush(store)
        return True
