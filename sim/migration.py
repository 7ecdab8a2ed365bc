#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Migration simulator for the planner.

- Rebuilds every task's hop sequence from the routing table.
- Replays the moves in discrete time steps. In each step a task may cross
  the link to its next hop only if fewer than `bandwidth` tasks have already
  claimed that link (either direction) in the same step.
- Tasks are admitted in ascending task index; granted tasks all move at the
  end of the step and each hop is logged as (time, task, src, dst).
- A step with no grant while tasks are still travelling is a deadlock: the
  whole simulation stops and SimulationDeadlock is raised with the partial
  result attached.

The simulator reads assignments and routes; it only writes the per-task
simulation fields (path, path_idx, current_pos, finished).
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List

from mig.routing import RoutingTable
from mig.state import TopologyState, link_key


# ----------------------------- Data classes -----------------------------

@dataclass(frozen=True)
class LogEntry:
    time: int
    task_id: int
    src: int
    dst: int

    def as_dict(self) -> Dict[str, int]:
        return {"time": self.time, "task": self.task_id, "src": self.src, "dst": self.dst}


@dataclass
class SimulationResult:
    total_time_steps: int = 0
    log: List[LogEntry] = field(default_factory=list)
    deadlocked: bool = False
    stuck_tasks: List[int] = field(default_factory=list)
    blocked_links: List[str] = field(default_factory=list)

    def moves_for(self, task_id: int) -> List[LogEntry]:
        return [e for e in self.log if e.task_id == task_id]


class SimulationDeadlock(RuntimeError):
    """No task could advance in a step although some are still in transit."""

    def __init__(self, result: SimulationResult):
        self.result = result
        super().__init__(
            f"deadlock at step {result.total_time_steps}: tasks {result.stuck_tasks} "
            f"blocked on links {result.blocked_links}"
        )


# ----------------------------- Engine -----------------------------

class MigrationSimulator:
    def __init__(
        self,
        state: TopologyState,
        routes: RoutingTable,
        verbose: bool = False,
    ):
        self.state = state
        self.routes = routes
        self.verbose = verbose

    def log(self, msg: str):
        if self.verbose:
            print(f"[sim] {msg}")

    def prepare(self) -> None:
        for t in self.state.tasks:
            t.path = self.routes.path(t.start_node, t.end_node) if t.start_node != t.end_node else []
            t.path_idx = 0
            t.current_pos = t.start_node
            t.finished = not t.path

    def step(self, now: int) -> List[LogEntry]:
        """Run one time step; returns the moves committed in it."""
        claims: Dict[str, int] = defaultdict(int)
        granted = []

        for t in self.state.tasks:
            if t.finished:
                continue
            u = t.current_pos
            v = t.path[t.path_idx]
            k = link_key(u, v)
            if claims[k] < self.state.bandwidth(u, v):
                claims[k] += 1
                granted.append(t)

        moves = []
        for t in granted:
            src, dst = t.current_pos, t.path[t.path_idx]
            moves.append(LogEntry(now, t.id, src, dst))
            t.current_pos = dst
            t.path_idx += 1
            if t.path_idx >= len(t.path):
                t.finished = True
        return moves

    def run(self) -> SimulationResult:
        self.prepare()
        result = SimulationResult()
        now = 0

        while any(not t.finished for t in self.state.tasks):
            now += 1
            moves = self.step(now)
            result.total_time_steps = now

            if not moves:
                stuck = [t for t in self.state.tasks if not t.finished]
                result.deadlocked = True
                result.stuck_tasks = [t.id for t in stuck]
                result.blocked_links = sorted({link_key(t.current_pos, t.path[t.path_idx]) for t in stuck})
                self.log(f"DEADLOCK at t={now}: {len(stuck)} task(s) cannot advance")
                raise SimulationDeadlock(result)

            result.log.extend(moves)
            self.log(f"t={now}: {len(moves)} move(s)")

        self.log(f"finished in {result.total_time_steps} step(s), {len(result.log)} hop(s)")
        return result


def summarize(result: SimulationResult) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "total_time_steps": result.total_time_steps,
        "moves": [e.as_dict() for e in result.log],
        "deadlock": None,
    }
    if result.deadlocked:
        out["deadlock"] = {
            "time_step": result.total_time_steps,
            "stuck_tasks": list(result.stuck_tasks),
            "blocked_links": list(result.blocked_links),
        }
    return out
