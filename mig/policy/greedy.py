#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
mig/policy/greedy.py — Greedy initial placement.

What it does
------------
- Orders tasks by descending demand (input order breaks ties) so the
  largest tasks claim capacity first.
- For each task scans every node in ascending id order, keeps the feasible
  ones (reachable + enough free capacity) and picks the cheapest
  dist[start][target] * demand. First node wins on equal cost.
- Commits each choice immediately; later tasks see the reduced capacity.
- A task with no feasible node stays on its start node at cost 0 and is
  flagged placed=False. Its demand is not charged to any node.

Key API
-------
planner = GreedyPlanner(state, cost_model, cfg=None)
result  = planner.place()

Result shape
------------
{
  "assignments": {task_id: node_id, ...},
  "infeasible": [task_id, ...],
  "total_cost": float,
}
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from mig.cost_model import CostModel
from mig.state import INF, Task, TopologyState


DEFAULT_CFG = {
    "verbose": False,
}


class GreedyPlanner:
    def __init__(
        self,
        state: TopologyState,
        cost_model: CostModel,
        cfg: Optional[Dict[str, Any]] = None,
    ):
        self.state = state
        self.cm = cost_model
        self.cfg = {**DEFAULT_CFG, **(cfg or {})}

    def log(self, msg: str):
        if self.cfg["verbose"]:
            print(f"[greedy] {msg}")

    def order(self) -> List[Task]:
        # sorted() is stable, so equal demands keep input order
        return sorted(self.state.tasks, key=lambda t: t.demand, reverse=True)

    def best_target(self, task: Task) -> Optional[int]:
        best_node = None
        best_cost = INF
        for node in self.state.nodes:
            if not self.cm.feasible(task, node.id):
                continue
            c = self.cm.migration_cost(task, node.id)
            if best_node is None or c < best_cost:
                best_node = node.id
                best_cost = c
        return best_node

    # --------- public: place all tasks ---------

    def place(self) -> Dict[str, Any]:
        self.state.reset_usage()
        infeasible: List[int] = []

        for t in self.order():
            target = self.best_target(t)
            if target is None:
                t.end_node = t.start_node
                t.migration_cost = 0
                t.placed = False
                infeasible.append(t.id)
                self.log(f"task {t.id}: no feasible node (demand={t.demand}), stays on {t.start_node}")
                continue

            t.end_node = target
            t.migration_cost = self.cm.migration_cost(t, target)
            t.placed = True
            self.state.node(target).current_usage += t.demand
            self.log(f"task {t.id}: {t.start_node} -> {target} cost={t.migration_cost}")

        total = self.cm.total_cost()
        self.log(f"placed {len(self.state.tasks) - len(infeasible)}/{len(self.state.tasks)} tasks, total cost {total}")
        return {
            "assignments": self.state.assignment(),
            "infeasible": sorted(infeasible),
            "total_cost": total,
        }
