#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
mig/routing.py — All-pairs shortest paths and next-hop routing table.

Public API
----------
dist, nxt = floyd_warshall(cost)       # pure, works on slot-indexed matrices

rt = RoutingTable.build(state)
rt.distance(a, b)    → float (INF if unreachable)
rt.reachable(a, b)   → bool
rt.next_hop(a, b)    → node id or None
rt.path(a, b)        → [hop1, hop2, ..., b]  (empty when a == b)
rt.path_cost(a, b)   → sum of link costs along path(a, b)

Conventions
-----------
- `next_hop[i][j]` always points at the first hop of the best path found so
  far; on an improvement through k it inherits `next_hop[i][k]`.
- Unreachable pairs keep INF and a None next hop.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from .state import INF, TopologyState


class UnreachableError(LookupError):
    """No route exists between the two nodes."""


def floyd_warshall(cost: List[List[float]]) -> Tuple[List[List[float]], List[List[Optional[int]]]]:
    n = len(cost)
    dist = [list(row) for row in cost]
    nxt: List[List[Optional[int]]] = [[None] * n for _ in range(n)]
    for i in range(n):
        dist[i][i] = 0
        for j in range(n):
            if i == j or dist[i][j] != INF:
                nxt[i][j] = j

    for k in range(n):
        dk = dist[k]
        for i in range(n):
            dik = dist[i][k]
            if dik == INF:
                continue
            di = dist[i]
            ni = nxt[i]
            for j in range(n):
                dkj = dk[j]
                if dkj == INF:
                    continue
                if dik + dkj < di[j]:
                    di[j] = dik + dkj
                    ni[j] = ni[k]
    return dist, nxt


class RoutingTable:
    def __init__(
        self,
        node_ids: List[int],
        dist: List[List[float]],
        next_hop: List[List[Optional[int]]],
        cost: Optional[List[List[float]]] = None,
    ):
        self.node_ids = list(node_ids)
        self.cost = cost
        self.index_of: Dict[int, int] = {nid: i for i, nid in enumerate(self.node_ids)}
        self.dist = dist
        self._next = next_hop

    @classmethod
    def build(cls, state: TopologyState) -> "RoutingTable":
        cost = state.cost_matrix()
        dist, nxt = floyd_warshall(cost)
        return cls([n.id for n in state.nodes], dist, nxt, cost=cost)

    # -------- lookups by node id --------

    def distance(self, a: int, b: int) -> float:
        return self.dist[self.index_of[a]][self.index_of[b]]

    def reachable(self, a: int, b: int) -> bool:
        return self.distance(a, b) != INF

    def next_hop(self, a: int, b: int) -> Optional[int]:
        slot = self._next[self.index_of[a]][self.index_of[b]]
        return None if slot is None else self.node_ids[slot]

    def path(self, a: int, b: int) -> List[int]:
        """Nodes visited after `a` on the way to `b` (b included)."""
        if a == b:
            return []
        if not self.reachable(a, b):
            raise UnreachableError(f"no route from {a} to {b}")
        hops: List[int] = []
        cur = a
        # A shortest path never repeats a node, so n hops is a hard ceiling.
        for _ in range(len(self.node_ids)):
            cur = self.next_hop(cur, b)
            hops.append(cur)
            if cur == b:
                return hops
        raise UnreachableError(f"routing loop between {a} and {b}")

    def path_cost(self, a: int, b: int) -> float:
        """Sum of direct link costs along path(a, b); equals distance(a, b)."""
        cost = self.cost if self.cost is not None else self.dist
        total = 0
        cur = a
        for hop in self.path(a, b):
            total += cost[self.index_of[cur]][self.index_of[hop]]
            cur = hop
        return total

    # -------- views --------

    def as_dict(self) -> Dict[str, Dict[str, Dict[str, Optional[float]]]]:
        """JSON-friendly tables keyed by node id (None marks unreachable)."""
        dist: Dict[str, Dict[str, Optional[float]]] = {}
        hops: Dict[str, Dict[str, Optional[float]]] = {}
        for a in self.node_ids:
            dist[str(a)] = {}
            hops[str(a)] = {}
            for b in self.node_ids:
                d = self.distance(a, b)
                dist[str(a)][str(b)] = None if d == INF else d
                hops[str(a)][str(b)] = self.next_hop(a, b)
        return {"dist": dist, "next_hop": hops}
