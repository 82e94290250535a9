# packing/services/connections.py
"""
Operator-drawn "same box" links between packable units.

The graph only knows unit ids; screen geometry of the connectors is a UI
concern.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from packing.domain.models import Connection


def connection_id(from_unit: str, to_unit: str) -> str:
    return f"{from_unit}_to_{to_unit}"


class _DisjointSet:
    """Union-find with path halving and union by size."""

    def __init__(self, keys: Iterable[str]):
        self.parent: Dict[str, str] = {k: k for k in keys}
        self.size: Dict[str, int] = {k: 1 for k in self.parent}

    def find(self, x: str) -> str:
        parent = self.parent
        while parent[x] != x:
            parent[x] = parent[parent[x]]
            x = parent[x]
        return x

    def union(self, a: str, b: str) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return
        if self.size[ra] < self.size[rb]:
            ra, rb = rb, ra
        self.parent[rb] = ra
        self.size[ra] += self.size[rb]


class ConnectionGraph:
    """Undirected graph over unit ids; edges kept in creation order."""

    def __init__(self, connections: Iterable[Connection] = ()):
        self._edges: Dict[str, Connection] = {}
        self._by_pair: Dict[frozenset, str] = {}
        for c in connections:
            self.add_edge(c.from_unit, c.to_unit)

    @property
    def connections(self) -> List[Connection]:
        return list(self._edges.values())

    def __len__(self) -> int:
        return len(self._edges)

    def __contains__(self, connection_id_: str) -> bool:
        return connection_id_ in self._edges

    def copy(self) -> "ConnectionGraph":
        return ConnectionGraph(self.connections)

    def find(self, a: str, b: str) -> Optional[Connection]:
        cid = self._by_pair.get(frozenset((a, b)))
        return self._edges.get(cid) if cid else None

    def add_edge(self, from_unit: str, to_unit: str) -> Optional[Connection]:
        """
        Link two units. Self-edges return None; an edge for an already linked
        pair (either direction) returns the existing connection.
        """
        if from_unit == to_unit:
            return None
        existing = self.find(from_unit, to_unit)
        if existing:
            return existing
        conn = Connection(id=connection_id(from_unit, to_unit), from_unit=from_unit, to_unit=to_unit)
        self._edges[conn.id] = conn
        self._by_pair[conn.pair] = conn.id
        return conn

    def remove_edge(self, connection_id_: str) -> Optional[Connection]:
        conn = self._edges.pop(connection_id_, None)
        if conn:
            self._by_pair.pop(conn.pair, None)
        return conn

    def neighbours(self, unit_id: str) -> List[str]:
        return [c.other(unit_id) for c in self._edges.values() if unit_id in (c.from_unit, c.to_unit)]

    def is_connected(self, unit_id: str) -> bool:
        return any(unit_id in (c.from_unit, c.to_unit) for c in self._edges.values())

    def prune(self, unit_ids: Iterable[str]) -> List[Connection]:
        """Drop edges touching units that no longer exist; return what was dropped."""
        known = set(unit_ids)
        dropped = [c for c in self._edges.values() if c.from_unit not in known or c.to_unit not in known]
        for c in dropped:
            self.remove_edge(c.id)
        return dropped

    def connected_components(
        self,
        unit_ids: Sequence[str],
        extra_links: Iterable[Tuple[str, str]] = (),
    ) -> List[List[str]]:
        """
        Partition ``unit_ids`` into connected components.

        Every id appears in exactly one group, singletons included. Groups are
        ordered by their earliest member in ``unit_ids`` and list members in
        that same order. Edges to unknown ids are ignored. ``extra_links`` are
        treated as additional edges for this call only.
        """
        order = {uid: idx for idx, uid in enumerate(unit_ids)}
        ds = _DisjointSet(order)

        for c in self._edges.values():
            if c.from_unit in order and c.to_unit in order:
                ds.union(c.from_unit, c.to_unit)
        for a, b in extra_links:
            if a in order and b in order:
                ds.union(a, b)

        groups: Dict[str, List[str]] = {}
        for uid in unit_ids:
            groups.setdefault(ds.find(uid), []).append(uid)
        # dict preserves insertion order, i.e. order of each group's first member
        return list(groups.values())
