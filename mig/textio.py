#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
mig/textio.py — Plain-text input/output format.

Input (whitespace separated)
----------------------------
N M T
<node_id> <capacity>                 × N
<u> <v> <cost> <bandwidth>           × M
<task_id> <start_node> <demand>      × T

Output (one record per line)
----------------------------
<task_id> <start> <end> <cost>       per task, ascending id
<node_id> <usage>                    per node, ascending id
<total_cost>
<total_time_steps>
<time> <task_id> <from> <to>         per committed move
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List

from .state import InvalidTopology, Link, Node, Task, TopologyState


def _ints(text: str) -> Iterator[int]:
    for tok in text.split():
        try:
            yield int(tok)
        except ValueError:
            raise InvalidTopology(f"expected an integer, got {tok!r}") from None


def parse_text(text: str) -> TopologyState:
    it = _ints(text)

    def take(n: int, what: str) -> List[int]:
        vals = []
        for _ in range(n):
            try:
                vals.append(next(it))
            except StopIteration:
                raise InvalidTopology(f"input ended early while reading {what}") from None
        return vals

    n_nodes, n_links, n_tasks = take(3, "header")
    if min(n_nodes, n_links, n_tasks) < 0:
        raise InvalidTopology("header counts must be non-negative")

    nodes = []
    for i in range(n_nodes):
        nid, cap = take(2, f"node {i + 1}")
        nodes.append(Node(id=nid, capacity=cap))

    links = []
    for i in range(n_links):
        u, v, cost, bw = take(4, f"link {i + 1}")
        links.append(Link(a=u, b=v, cost=cost, bandwidth=bw))

    tasks = []
    for i in range(n_tasks):
        tid, start, demand = take(3, f"task {i + 1}")
        tasks.append(Task(id=tid, start_node=start, demand=demand))

    state = TopologyState(nodes, links, tasks)
    state.validate()
    return state


def _num(x: Any) -> str:
    if isinstance(x, float) and x.is_integer():
        return str(int(x))
    return str(x)


def format_text(result: Dict[str, Any]) -> str:
    lines: List[str] = []
    for t in result["tasks"]:
        lines.append(f"{t['id']} {t['start']} {t['end']} {_num(t['cost'])}")
    for n in result["nodes"]:
        lines.append(f"{n['id']} {n['usage']}")
    lines.append(_num(result["total_cost"]))
    lines.append(str(result["total_time_steps"]))
    for m in result["moves"]:
        lines.append(f"{m['time']} {m['task']} {m['src']} {m['dst']}")
    return "\n".join(lines) + "\n"
