#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
mig/policy/annealing.py — Simulated-annealing refinement of a placement.

Starts from whatever assignment is on the state (normally the greedy one)
and keeps moving single tasks to random nodes:

* a move is only considered if the target is reachable from the task's
  start node and has room for the task's demand;
* improving moves are always taken, worsening ones with probability
  exp(-delta / T) (Metropolis);
* T decays by `cooling_rate` every iteration and is reheated to
  `t_start * reheat_fraction` once it drops under `t_end`;
* the best assignment seen is kept as an immutable Snapshot and restored
  when the budget runs out.

The budget is `time_limit_s` of monotonic time (checked every `check_every`
iterations) and/or `max_iterations`. With a fixed `seed` and an iteration
cap the run is fully reproducible.
"""

from __future__ import annotations

import math
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from mig.cost_model import CostModel
from mig.state import TopologyState


DEFAULT_CFG = {
    "seed": None,              # None → seeded from OS entropy
    "time_limit_s": 1.8,       # None → no wall budget (max_iterations required)
    "max_iterations": None,
    "t_start": 2000.0,
    "t_end": 1e-8,
    "cooling_rate": 0.999,
    "reheat_fraction": 0.5,
    "check_every": 1024,
    "verbose": False,
}


@dataclass(frozen=True)
class Snapshot:
    """Assignment vector (end node per task, in state.tasks order) and its cost."""
    end_nodes: Tuple[int, ...]
    cost: float


@dataclass
class AnnealStats:
    iterations: int = 0
    accepted: int = 0
    improved: int = 0
    reheats: int = 0
    initial_cost: float = 0
    best_cost: float = 0
    elapsed_s: float = 0.0
    history: List[Tuple[int, float]] = field(default_factory=list)  # (iteration, best_cost)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "iterations": self.iterations,
            "accepted": self.accepted,
            "improved": self.improved,
            "reheats": self.reheats,
            "initial_cost": self.initial_cost,
            "best_cost": self.best_cost,
            "elapsed_s": round(self.elapsed_s, 4),
        }


class AnnealingPlanner:
    def __init__(
        self,
        state: TopologyState,
        cost_model: CostModel,
        cfg: Optional[Dict[str, Any]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.state = state
        self.cm = cost_model
        self.cfg = {**DEFAULT_CFG, **(cfg or {})}
        self.clock = clock
        self.rng = random.Random(self.cfg["seed"])

        if self.cfg["time_limit_s"] is None and self.cfg["max_iterations"] is None:
            raise ValueError("annealing needs time_limit_s or max_iterations")
        if not 0.0 < float(self.cfg["cooling_rate"]) < 1.0:
            raise ValueError("cooling_rate must be in (0, 1)")
        if float(self.cfg["t_end"]) <= 0 or float(self.cfg["t_start"]) <= float(self.cfg["t_end"]):
            raise ValueError("need 0 < t_end < t_start")
        if int(self.cfg["check_every"]) < 1:
            raise ValueError("check_every must be at least 1")

    def log(self, msg: str):
        if self.cfg["verbose"]:
            print(f"[anneal] {msg}")

    # --------- snapshot / restore ---------

    def snapshot(self, cost: float) -> Snapshot:
        return Snapshot(tuple(t.end_node for t in self.state.tasks), cost)

    def restore(self, snap: Snapshot) -> None:
        """Reset every task to the snapshot and rebuild node usage from scratch."""
        for t, end in zip(self.state.tasks, snap.end_nodes):
            t.end_node = end
            t.migration_cost = self.cm.migration_cost(t, end)
        self.cm.recompute_usage()

    # --------- budget ---------

    def _out_of_budget(self, it: int, t0: float) -> bool:
        cap = self.cfg["max_iterations"]
        if cap is not None and it >= cap:
            return True
        limit = self.cfg["time_limit_s"]
        if limit is not None and it % int(self.cfg["check_every"]) == 0:
            return self.clock() - t0 > float(limit)
        return False

    # --------- public: optimize ---------

    def optimize(self) -> AnnealStats:
        state = self.state
        nodes = state.nodes
        movable = [t for t in state.tasks if t.placed]

        current_cost = self.cm.total_cost()
        best = self.snapshot(current_cost)
        stats = AnnealStats(initial_cost=current_cost, best_cost=current_cost)
        stats.history.append((0, current_cost))

        if not movable or len(nodes) < 2:
            self.log("nothing to optimize")
            return stats

        t_start = float(self.cfg["t_start"])
        t_end = float(self.cfg["t_end"])
        cooling = float(self.cfg["cooling_rate"])
        reheat_to = t_start * float(self.cfg["reheat_fraction"])
        temp = t_start

        t0 = self.clock()
        it = 0
        while not self._out_of_budget(it, t0):
            it += 1

            t = movable[self.rng.randrange(len(movable))]
            new_id = nodes[self.rng.randrange(len(nodes))].id
            old_id = t.end_node

            if new_id != old_id and self.cm.feasible(t, new_id):
                new_cost = self.cm.migration_cost(t, new_id)
                delta = new_cost - t.migration_cost
                if delta < 0 or self.rng.random() < math.exp(-delta / temp):
                    state.node(old_id).current_usage -= t.demand
                    state.node(new_id).current_usage += t.demand
                    t.end_node = new_id
                    t.migration_cost = new_cost
                    current_cost += delta
                    stats.accepted += 1

                    if current_cost < best.cost:
                        best = self.snapshot(current_cost)
                        stats.improved += 1
                        stats.history.append((it, current_cost))

            temp *= cooling
            if temp < t_end:
                temp = reheat_to
                stats.reheats += 1

        self.restore(best)
        stats.iterations = it
        stats.best_cost = self.cm.total_cost()
        stats.elapsed_s = self.clock() - t0
        self.log(
            f"{it} iterations, {stats.accepted} accepted, {stats.reheats} reheats; "
            f"cost {stats.initial_cost} -> {stats.best_cost}"
        )
        return stats
