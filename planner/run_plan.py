#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
planner/run_plan.py — plan task migrations for a topology (local or remote).

Usage
-----
# Text input on stdin, text output on stdout
python3 -m planner.run_plan < cluster.txt

# YAML topology, reproducible run, pretty summary
python3 -m planner.run_plan --input topo.yaml --seed 7 --iterations 50000 --summary

# Remote (use if mig/api.py is running on another process/machine)
python3 -m planner.run_plan --remote http://127.0.0.1:8080 --input topo.yaml

Options
-------
--input PATH          Topology file, '-' for stdin (default)
--format STR          text | yaml (default: guessed from the file suffix)
--seed N              Annealing seed (default: OS entropy)
--time-limit S        Annealing wall budget in seconds (default 1.8)
--iterations N        Annealing iteration cap
--remote URL          If provided, POSTs to {URL}/plan
--summary             Print tables instead of the text output lines
--out PATH            Save full JSON result here
--verbose             Print per-stage progress

Exit codes: 0 ok, 1 planning failed, 2 bad input, 3 migration deadlocked.
"""

from __future__ import annotations
import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

# Optional pretty console
try:
    from rich.console import Console
    from rich.table import Table
    RICH = True
    console = Console()
except Exception:
    RICH = False
    console = None  # type: ignore

from mig.pipeline import plan
from mig.state import InvalidTopology, TopologyState
from mig.textio import format_text, parse_text

EXIT_FAILED = 1
EXIT_BAD_INPUT = 2
EXIT_DEADLOCK = 3


def read_source(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def guess_format(path: str, explicit: Optional[str]) -> str:
    if explicit:
        return explicit
    if Path(path).suffix.lower() in (".yaml", ".yml", ".json"):
        return "yaml"
    return "text"


def load_state(raw: str, fmt: str) -> TopologyState:
    if fmt == "yaml":
        # JSON is a subset of YAML, so one loader covers both
        return TopologyState.from_dict(yaml.safe_load(raw) or {})
    return parse_text(raw)


def print_summary(result: Dict[str, Any]):
    deadlock = result.get("deadlock")
    if not RICH:
        print(f"total cost={result['total_cost']}  steps={result['total_time_steps']}  "
              f"moves={len(result['moves'])}  deadlock={'yes' if deadlock else 'no'}")
        for t in result["tasks"]:
            flag = "" if t.get("placed", True) else "  (no feasible node)"
            print(f"  - task {t['id']}: {t['start']} → {t['end']}  cost={t['cost']}{flag}")
        for n in result["nodes"]:
            print(f"  - node {n['id']}: {n['usage']}/{n['capacity']}")
        return

    tbl = Table(title="Assignments", show_lines=False)
    tbl.add_column("Task", style="bold")
    tbl.add_column("Start", justify="right")
    tbl.add_column("End", justify="right")
    tbl.add_column("Cost", justify="right")
    tbl.add_column("Placed", justify="center")
    for t in result["tasks"]:
        tbl.add_row(
            str(t["id"]), str(t["start"]), str(t["end"]), f"{t['cost']}",
            "✅" if t.get("placed", True) else "❌",
        )
    console.print(tbl)  # type: ignore

    ntbl = Table(title="Node load")
    ntbl.add_column("Node", style="bold")
    ntbl.add_column("Usage", justify="right")
    ntbl.add_column("Capacity", justify="right")
    for n in result["nodes"]:
        ntbl.add_row(str(n["id"]), str(n["usage"]), str(n["capacity"]))
    console.print(ntbl)  # type: ignore

    console.print(  # type: ignore
        f"[b]total cost[/b] {result['total_cost']}   "
        f"[b]steps[/b] {result['total_time_steps']}   "
        f"[b]moves[/b] {len(result['moves'])}"
    )
    if deadlock:
        console.print(  # type: ignore
            f"[red]deadlock at step {deadlock['time_step']}[/red]: "
            f"tasks {deadlock['stuck_tasks']} on {deadlock['blocked_links']}"
        )


def plan_remote(base_url: str, state: TopologyState, anneal: Dict[str, Any]) -> Dict[str, Any]:
    import requests  # only needed in remote mode
    base = base_url.rstrip("/")
    snap = state.snapshot()
    topology = {
        "nodes": [{"id": n["id"], "capacity": n["capacity"]} for n in snap["nodes"]],
        "links": [{k: ln[k] for k in ("a", "b", "cost", "bandwidth")} for ln in snap["links"]],
        "tasks": [{"id": t["id"], "start": t["start"], "demand": t["demand"]} for t in snap["tasks"]],
    }
    r = requests.post(f"{base}/plan", json={"topology": topology, "anneal": anneal}, timeout=120)
    j = r.json()
    if not j.get("ok"):
        raise RuntimeError(f"remote /plan error: {j}")
    return j["data"]


def build_argparser():
    ap = argparse.ArgumentParser(description="Plan and simulate task migrations")
    ap.add_argument("--input", default="-", help="Topology file (text or YAML/JSON); '-' reads stdin")
    ap.add_argument("--format", default=None, choices=["text", "yaml"], help="Input format")
    ap.add_argument("--seed", type=int, default=None, help="Annealing RNG seed")
    ap.add_argument("--time-limit", type=float, default=None, help="Annealing budget in seconds")
    ap.add_argument("--iterations", type=int, default=None, help="Annealing iteration cap")
    ap.add_argument("--remote", default=None, help="Base URL of mig/api (e.g., http://127.0.0.1:8080)")
    ap.add_argument("--summary", action="store_true", help="Print tables instead of text lines")
    ap.add_argument("--out", default=None, help="Write JSON result to this path")
    ap.add_argument("--verbose", action="store_true", help="Print planner progress")
    return ap


def anneal_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    cfg: Dict[str, Any] = {}
    if args.seed is not None:
        cfg["seed"] = args.seed
    if args.iterations is not None:
        cfg["max_iterations"] = args.iterations
        # an explicit cap without a time limit means "run exactly N iterations"
        cfg["time_limit_s"] = args.time_limit
    elif args.time_limit is not None:
        cfg["time_limit_s"] = args.time_limit
    return cfg


def main(argv: Optional[List[str]] = None) -> int:
    args = build_argparser().parse_args(argv)

    try:
        raw = read_source(args.input)
        state = load_state(raw, guess_format(args.input, args.format))
    except FileNotFoundError:
        print(f"error: input file not found: {args.input}", file=sys.stderr)
        return EXIT_BAD_INPUT
    except (InvalidTopology, yaml.YAMLError) as e:
        print(f"error: invalid input: {e}", file=sys.stderr)
        return EXIT_BAD_INPUT

    anneal = anneal_overrides(args)
    try:
        if args.remote:
            result = plan_remote(args.remote, state, anneal)
        else:
            result = plan(state, anneal_cfg=anneal, verbose=args.verbose)
    except Exception as e:
        print(f"error: planning failed: {e}", file=sys.stderr)
        return EXIT_FAILED

    if args.summary:
        print_summary(result)
    else:
        sys.stdout.write(format_text(result))

    if args.out:
        outp = Path(args.out)
        try:
            outp.parent.mkdir(parents=True, exist_ok=True)
            outp.write_text(json.dumps(result, indent=2), encoding="utf-8")
            if RICH and args.summary:
                console.print(f"[green]Saved result →[/green] {outp}")  # type: ignore
        except OSError as e:
            print(f"warn: failed to write --out file: {e}", file=sys.stderr)

    deadlock = result.get("deadlock")
    if deadlock:
        print(
            f"warn: migration deadlocked at step {deadlock['time_step']}; "
            f"stuck tasks {deadlock['stuck_tasks']}",
            file=sys.stderr,
        )
        return EXIT_DEADLOCK
    return 0


if __name__ == "__main__":
    sys.exit(main())
