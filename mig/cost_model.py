#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
mig/cost_model.py — Migration cost and feasibility rules for the planners.

Public API
----------
cm = CostModel(state, routes)

c   = cm.migration_cost(task, target_id)   # dist[start][target] * demand (INF if unreachable)
tot = cm.total_cost()                      # sum over tasks of their current assignment cost
ok  = cm.fits(node, task)                  # usage + demand <= capacity
ok  = cm.feasible(task, target_id)         # reachable AND fits
bad = cm.check_capacity()                  # [node_id, ...] currently over capacity

Both planners (greedy, annealing) share `feasible()`, so a placement that one
of them accepts is always acceptable to the other.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from .routing import RoutingTable
from .state import INF, Node, Task, TopologyState


class CostModel:
    def __init__(self, state: TopologyState, routes: RoutingTable):
        self.state = state
        self.routes = routes

    # ---------- per task ----------

    def migration_cost(self, task: Task, target: int) -> float:
        d = self.routes.distance(task.start_node, target)
        if d == INF:
            return INF
        return d * task.demand

    def fits(self, node: Node, task: Task) -> bool:
        return node.current_usage + task.demand <= node.capacity

    def feasible(self, task: Task, target: int) -> bool:
        if not self.routes.reachable(task.start_node, target):
            return False
        return self.fits(self.state.node(target), task)

    # ---------- aggregate ----------

    def total_cost(self, tasks: Optional[Iterable[Task]] = None) -> float:
        total = 0
        for t in (self.state.tasks if tasks is None else tasks):
            total += self.migration_cost(t, t.end_node)
        return total

    def check_capacity(self) -> List[int]:
        return [n.id for n in self.state.nodes if n.current_usage > n.capacity]

    def recompute_usage(self) -> None:
        """Rebuild node usage from task assignments (unplaced tasks are not charged)."""
        self.state.reset_usage()
        for t in self.state.tasks:
            if t.placed:
                self.state.node(t.end_node).current_usage += t.demand
