#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
mig/api.py — Flask API for the migration planner

Endpoints
---------
GET  /health
POST /plan      { topology: {nodes, links, tasks} | text: "N M T ...", anneal?: {...} }
POST /routes    { topology: {...} | text: "..." }
GET  /plans     recent plan summaries (newest first)

Run
---
export FLASK_APP=mig.api:app
flask run -h 0.0.0.0 -p 8080

or:

python3 -m mig.api --host 0.0.0.0 --port 8080
"""

from __future__ import annotations
import argparse
import os
import time
from collections import deque
from typing import Any, Deque, Dict

from flask import Flask, jsonify, request

from .pipeline import plan as run_plan
from .policy.annealing import DEFAULT_CFG as ANNEAL_DEFAULTS
from .routing import RoutingTable
from .state import TopologyState
from .textio import parse_text

# -----------------------------------
# App singletons
# -----------------------------------

RECENT_PLANS: Deque[Dict[str, Any]] = deque(maxlen=200)

# Annealing knobs a client may override; the rest stay server-side.
ANNEAL_KEYS = ("seed", "time_limit_s", "max_iterations", "t_start", "t_end",
               "cooling_rate", "reheat_fraction")
MAX_TIME_LIMIT_S = float(os.environ.get("MIG_API_MAX_TIME_LIMIT_S", "10"))

app = Flask(__name__)


# -----------------------------------
# Helpers
# -----------------------------------


def _ok(data: Any, status: int = 200):
    return jsonify({"ok": True, "data": data}), status


def _err(msg: str, status: int = 400, **extra):
    return jsonify({"ok": False, "error": msg, **extra}), status


def _state_from_body(body: Any) -> TopologyState:
    if not isinstance(body, dict):
        raise ValueError("request body must be a JSON object")
    if body.get("text"):
        return parse_text(str(body["text"]))
    topo = body.get("topology")
    if not topo:
        raise ValueError("missing 'topology' (or 'text')")
    return TopologyState.from_dict(topo)


def _anneal_cfg(body: Dict[str, Any]) -> Dict[str, Any]:
    raw = body.get("anneal") or {}
    if not isinstance(raw, dict):
        raise ValueError("'anneal' must be a JSON object")
    cfg = {k: raw[k] for k in ANNEAL_KEYS if k in raw}
    for k, v in cfg.items():
        if v is None and k in ("seed", "time_limit_s", "max_iterations"):
            continue
        if k == "seed" and isinstance(v, str):
            continue
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError(f"anneal.{k} must be a number, got {v!r}")
    # every request runs under the wall-clock cap, iteration cap or not
    limit = cfg.get("time_limit_s", ANNEAL_DEFAULTS["time_limit_s"])
    if limit is None or float(limit) > MAX_TIME_LIMIT_S:
        cfg["time_limit_s"] = MAX_TIME_LIMIT_S
    return cfg


# -----------------------------------
# Routes
# -----------------------------------


@app.get("/health")
def health():
    return _ok({"status": "up", "ts": int(time.time() * 1000)})


@app.post("/plan")
def plan():
    """
    Plan and simulate one topology.
    Body:
    {
      "topology": {"nodes": [...], "links": [...], "tasks": [...]},
      "anneal": {"seed": 7, "max_iterations": 20000, ...}
    }
    """
    if not request.is_json:
        return _err("expected JSON body")
    body = request.get_json() or {}
    try:
        state = _state_from_body(body)
        result = run_plan(state, anneal_cfg=_anneal_cfg(body))
    except ValueError as e:
        return _err(str(e))

    RECENT_PLANS.appendleft({
        "ts": int(time.time() * 1000),
        "tasks": len(result["tasks"]),
        "nodes": len(result["nodes"]),
        "total_cost": result["total_cost"],
        "total_time_steps": result["total_time_steps"],
        "deadlock": result["deadlock"] is not None,
    })
    return _ok(result)


@app.post("/routes")
def routes():
    if not request.is_json:
        return _err("expected JSON body")
    body = request.get_json() or {}
    try:
        state = _state_from_body(body)
    except ValueError as e:
        return _err(str(e))
    return _ok(RoutingTable.build(state).as_dict())


@app.get("/plans")
def plans():
    return _ok(list(RECENT_PLANS))


# -----------------------------------
# CLI entrypoint
# -----------------------------------


def main():
    ap = argparse.ArgumentParser(description="Migration planner API")
    ap.add_argument("--host", default=os.environ.get("MIG_API_HOST", "127.0.0.1"))
    ap.add_argument(
        "--port", type=int, default=int(os.environ.get("MIG_API_PORT", "8080"))
    )
    ap.add_argument("--debug", action="store_true")
    args = ap.parse_args()
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
