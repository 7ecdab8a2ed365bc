#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
mig/pipeline.py — End-to-end planning run.

validate → shortest paths → greedy → annealing → migration simulation

Result shape
------------
{
  "tasks":  [{"id", "start", "end", "demand", "cost", "placed"}],   # ascending task id
  "nodes":  [{"id", "capacity", "usage"}],                          # ascending node id
  "total_cost": float,
  "total_time_steps": int,
  "moves": [{"time", "task", "src", "dst"}],                        # commit order
  "deadlock": None | {"time_step", "stuck_tasks", "blocked_links"},
  "greedy": {"infeasible": [...], "total_cost": ...},
  "anneal": {"iterations", "accepted", ..., "best_cost"},
}

A deadlocked simulation is still a result: `deadlock` is filled in and the
moves committed before the stall are kept.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from mig.cost_model import CostModel
from mig.policy.annealing import AnnealingPlanner
from mig.policy.greedy import GreedyPlanner
from mig.routing import RoutingTable
from mig.state import TopologyState
from sim.migration import MigrationSimulator, SimulationDeadlock, summarize


def plan(
    state: TopologyState,
    anneal_cfg: Optional[Dict[str, Any]] = None,
    verbose: bool = False,
) -> Dict[str, Any]:
    state.validate()

    routes = RoutingTable.build(state)
    cm = CostModel(state, routes)

    greedy = GreedyPlanner(state, cm, cfg={"verbose": verbose}).place()
    stats = AnnealingPlanner(state, cm, cfg={"verbose": verbose, **(anneal_cfg or {})}).optimize()

    over = cm.check_capacity()
    if over:
        # planners only ever commit feasible moves
        raise RuntimeError(f"capacity exceeded on nodes {over}")

    sim = MigrationSimulator(state, routes, verbose=verbose)
    try:
        sim_out = summarize(sim.run())
    except SimulationDeadlock as e:
        if verbose:
            print(f"[plan] WARN: {e}")
        sim_out = summarize(e.result)

    tasks = sorted(state.tasks, key=lambda t: t.id)
    return {
        "tasks": [
            {"id": t.id, "start": t.start_node, "end": t.end_node, "demand": t.demand,
             "cost": t.migration_cost, "placed": t.placed}
            for t in tasks
        ],
        "nodes": [
            {"id": n.id, "capacity": n.capacity, "usage": n.current_usage}
            for n in state.nodes
        ],
        "total_cost": sum(t.migration_cost for t in tasks),
        **sim_out,
        "greedy": {"infeasible": greedy["infeasible"], "total_cost": greedy["total_cost"]},
        "anneal": stats.as_dict(),
    }
