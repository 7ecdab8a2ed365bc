#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
mig/state.py — Topology and task model for the migration planner.

Responsibilities
---------------
- Hold nodes (capacity + live usage), undirected links (cost + bandwidth)
  and tasks (start, demand, assignment, simulation cursor).
- Load from a YAML/JSON document or a plain dict:
    nodes: [{id, capacity}]
    links: [{a, b, cost, bandwidth}]
    tasks: [{id, start, demand}]
- Validate input before any computation starts.
- Offer a compact API for the planners and the simulator:
    • cost_matrix()        → N×N list, INF for non-edges
    • bandwidth(a, b)      → int (0 if no declared link)
    • node(id) / task(id)  → record lookups by identity
    • reset_usage()        → zero all node usage counters
    • snapshot()           → dict (nodes, links, tasks, ts)

Design notes
------------
- Nodes live in a list sorted by id; `index_of` maps id → slot. Every other
  module addresses nodes through these slots.
- Links are stored as an undirected map keyed by "A|B".
- Parallel links collapse to the cheapest cost; bandwidth is last write wins.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml


INF = float("inf")


# ----------------------------- helpers -----------------------------

def link_key(a: int, b: int) -> str:
    lo, hi = (a, b) if a <= b else (b, a)
    return f"{lo}|{hi}"


def strict_int(x: Any, what: str) -> int:
    """Integers (or integral floats) only; anything else is rejected, not defaulted."""
    if isinstance(x, bool):
        raise InvalidTopology(f"{what}: expected an integer, got {x!r}")
    if isinstance(x, int):
        return x
    if isinstance(x, float) and x.is_integer():
        return int(x)
    raise InvalidTopology(f"{what}: expected an integer, got {x!r}")


def _entries(doc: Dict[str, Any], section: str, required: Tuple[str, ...]) -> List[Dict[str, Any]]:
    raw = doc.get(section) or []
    if not isinstance(raw, list):
        raise InvalidTopology(f"'{section}' must be a list")
    for entry in raw:
        if not isinstance(entry, dict):
            raise InvalidTopology(f"{section}: each entry must be a mapping, got {entry!r}")
        missing = [k for k in required if k not in entry]
        if missing:
            raise InvalidTopology(f"{section}: entry {entry} is missing {', '.join(missing)}")
    return raw


def utc_ms() -> int:
    return int(time.time() * 1000)


class InvalidTopology(ValueError):
    """Raised when the input cannot be planned (bad ids, negative values...)."""


# ----------------------------- data classes -----------------------------

@dataclass
class Node:
    id: int
    capacity: int
    current_usage: int = 0


@dataclass
class Link:
    a: int
    b: int
    cost: float
    bandwidth: int

    @property
    def key(self) -> str:
        return link_key(self.a, self.b)


@dataclass
class Task:
    id: int
    start_node: int
    demand: int
    end_node: int = -1
    migration_cost: float = 0
    placed: bool = True

    # Simulation-only fields (owned by sim/migration.py)
    path: List[int] = field(default_factory=list)
    path_idx: int = 0
    current_pos: int = -1
    finished: bool = False

    def __post_init__(self):
        if self.end_node == -1:
            self.end_node = self.start_node
        if self.current_pos == -1:
            self.current_pos = self.start_node


# ----------------------------- Topology State -----------------------------

class TopologyState:
    def __init__(
        self,
        nodes: List[Node],
        links: List[Link],
        tasks: List[Task],
    ):
        self.nodes: List[Node] = sorted(nodes, key=lambda n: n.id)
        self.index_of: Dict[int, int] = {}
        self.tasks: List[Task] = list(tasks)
        self.links_by_key: Dict[str, Link] = {}

        dupes = []
        for i, n in enumerate(self.nodes):
            if n.id in self.index_of:
                dupes.append(n.id)
            self.index_of[n.id] = i
        if dupes:
            raise InvalidTopology(f"duplicate node ids: {sorted(set(dupes))}")

        for ln in links:
            self.add_link(ln)

    # -------- construction --------

    @classmethod
    def from_dict(cls, doc: Dict[str, Any]) -> "TopologyState":
        if not isinstance(doc, dict):
            raise InvalidTopology("topology must be a mapping with nodes/links/tasks")

        nodes = []
        for raw in _entries(doc, "nodes", ("id", "capacity")):
            nodes.append(Node(
                id=strict_int(raw["id"], "node id"),
                capacity=strict_int(raw["capacity"], f"node {raw['id']} capacity"),
            ))

        links = []
        for raw in _entries(doc, "links", ("a", "b")):
            where = f"link {raw['a']}-{raw['b']}"
            cost = raw.get("cost", 1)
            if isinstance(cost, bool) or not isinstance(cost, (int, float)):
                raise InvalidTopology(f"{where}: cost must be a number, got {cost!r}")
            links.append(Link(
                a=strict_int(raw["a"], f"{where} endpoint"),
                b=strict_int(raw["b"], f"{where} endpoint"),
                cost=cost,
                bandwidth=strict_int(raw.get("bandwidth", 1), f"{where} bandwidth"),
            ))

        tasks = []
        for raw in _entries(doc, "tasks", ("id", "start", "demand")):
            tasks.append(Task(
                id=strict_int(raw["id"], "task id"),
                start_node=strict_int(raw["start"], f"task {raw['id']} start"),
                demand=strict_int(raw["demand"], f"task {raw['id']} demand"),
            ))

        state = cls(nodes, links, tasks)
        state.validate()
        return state

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "TopologyState":
        with open(path, "r", encoding="utf-8") as f:
            doc = yaml.safe_load(f)
        return cls.from_dict(doc or {})

    def add_link(self, ln: Link) -> None:
        """Merge a declared edge: keep the cheapest cost, overwrite bandwidth."""
        k = ln.key
        cur = self.links_by_key.get(k)
        if cur is None:
            self.links_by_key[k] = Link(a=min(ln.a, ln.b), b=max(ln.a, ln.b),
                                        cost=ln.cost, bandwidth=ln.bandwidth)
            return
        if ln.cost < cur.cost:
            cur.cost = ln.cost
        cur.bandwidth = ln.bandwidth

    # -------- validation --------

    def validate(self) -> None:
        problems: List[str] = []
        for n in self.nodes:
            if n.capacity < 0:
                problems.append(f"node {n.id}: negative capacity {n.capacity}")
        for k, ln in self.links_by_key.items():
            if ln.a not in self.index_of or ln.b not in self.index_of:
                problems.append(f"link {k}: unknown endpoint")
            if ln.cost < 0:
                problems.append(f"link {k}: negative cost {ln.cost}")
            elif not ln.cost < INF:
                problems.append(f"link {k}: cost must be finite (got {ln.cost})")
            if ln.bandwidth < 0:
                problems.append(f"link {k}: negative bandwidth {ln.bandwidth}")
        seen = set()
        for t in self.tasks:
            if t.id in seen:
                problems.append(f"task {t.id}: duplicate id")
            seen.add(t.id)
            if t.start_node not in self.index_of:
                problems.append(f"task {t.id}: unknown start node {t.start_node}")
            if t.demand <= 0:
                problems.append(f"task {t.id}: demand must be positive (got {t.demand})")
        if problems:
            raise InvalidTopology("; ".join(problems))

    # -------- lookups --------

    @property
    def n(self) -> int:
        return len(self.nodes)

    def node(self, node_id: int) -> Node:
        return self.nodes[self.index_of[node_id]]

    def task(self, task_id: int) -> Optional[Task]:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    def link_between(self, a: int, b: int) -> Optional[Link]:
        return self.links_by_key.get(link_key(a, b))

    def bandwidth(self, a: int, b: int) -> int:
        ln = self.link_between(a, b)
        return ln.bandwidth if ln else 0

    def cost_matrix(self) -> List[List[float]]:
        """Direct link costs by slot; 0 on the diagonal, INF where no link exists."""
        n = self.n
        cost = [[INF] * n for _ in range(n)]
        for i in range(n):
            cost[i][i] = 0
        for ln in self.links_by_key.values():
            i, j = self.index_of[ln.a], self.index_of[ln.b]
            if i == j:
                continue
            if ln.cost < cost[i][j]:
                cost[i][j] = cost[j][i] = ln.cost
        return cost

    # -------- usage --------

    def reset_usage(self) -> None:
        for n in self.nodes:
            n.current_usage = 0

    def loads(self) -> Dict[int, int]:
        return {n.id: n.current_usage for n in self.nodes}

    def assignment(self) -> Dict[int, int]:
        return {t.id: t.end_node for t in self.tasks}

    # -------- views --------

    def snapshot(self) -> Dict[str, Any]:
        return {
            "ts": utc_ms(),
            "nodes": [
                {"id": n.id, "capacity": n.capacity, "usage": n.current_usage}
                for n in self.nodes
            ],
            "links": [
                {"key": k, "a": ln.a, "b": ln.b, "cost": ln.cost, "bandwidth": ln.bandwidth}
                for k, ln in sorted(self.links_by_key.items())
            ],
            "tasks": [
                {"id": t.id, "start": t.start_node, "end": t.end_node,
                 "demand": t.demand, "cost": t.migration_cost, "placed": t.placed}
                for t in self.tasks
            ],
        }
