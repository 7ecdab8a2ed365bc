import pathlib
import sys

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import mig.api
from mig.api import MAX_TIME_LIMIT_S, _anneal_cfg, app


@pytest.fixture()
def client():
    with app.test_client() as client:
        yield client


def make_topology():
    return {
        "nodes": [{"id": 1, "capacity": 0}, {"id": 2, "capacity": 10}, {"id": 3, "capacity": 10}],
        "links": [
            {"a": 1, "b": 2, "cost": 1, "bandwidth": 1},
            {"a": 2, "b": 3, "cost": 2, "bandwidth": 1},
        ],
        "tasks": [
            {"id": 1, "start": 1, "demand": 4},
            {"id": 2, "start": 1, "demand": 8},
        ],
    }


ANNEAL = {"seed": 5, "max_iterations": 2000}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["ok"] is True
    assert payload["data"]["status"] == "up"


def test_plan_returns_assignments_loads_and_moves(client):
    response = client.post("/plan", json={"topology": make_topology(), "anneal": ANNEAL})
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["ok"] is True

    data = payload["data"]
    ends = {t["id"]: t["end"] for t in data["tasks"]}
    # task 2 (demand 8) takes node 2, task 1 has to go on to node 3
    assert ends == {1: 3, 2: 2}
    assert data["total_cost"] == 4 * 3 + 8 * 1
    assert {n["id"]: n["usage"] for n in data["nodes"]} == {1: 0, 2: 8, 3: 4}
    assert data["total_time_steps"] == 2
    assert data["deadlock"] is None
    assert data["moves"][0] == {"time": 1, "task": 1, "src": 1, "dst": 2}


def test_plan_accepts_text_body(client):
    text = "2 1 1\n1 0\n2 10\n1 2 3 1\n1 1 2\n"
    response = client.post("/plan", json={"text": text, "anneal": ANNEAL})
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["total_cost"] == 6
    assert data["moves"] == [{"time": 1, "task": 1, "src": 1, "dst": 2}]


def test_plan_rejects_invalid_topology(client):
    topo = make_topology()
    topo["tasks"].append({"id": 3, "start": 42, "demand": 1})
    response = client.post("/plan", json={"topology": topo})

    assert response.status_code == 400
    payload = response.get_json()
    assert payload["ok"] is False
    assert "unknown start node 42" in payload["error"]


def test_plan_requires_a_topology(client):
    response = client.post("/plan", json={})
    assert response.status_code == 400
    assert "missing 'topology'" in response.get_json()["error"]


def test_plan_reports_deadlock(client):
    topo = make_topology()
    topo["links"][0]["bandwidth"] = 0
    response = client.post("/plan", json={"topology": topo, "anneal": ANNEAL})
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["deadlock"]["stuck_tasks"] == [1, 2]
    assert data["moves"] == []


def test_routes_returns_tables(client):
    response = client.post("/routes", json={"topology": make_topology()})
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["dist"]["1"]["3"] == 3
    assert data["next_hop"]["1"]["3"] == 2


def test_recent_plans_are_recorded(client):
    client.post("/plan", json={"topology": make_topology(), "anneal": ANNEAL})
    response = client.get("/plans")
    assert response.status_code == 200
    recent = response.get_json()["data"]
    assert recent
    assert recent[0]["tasks"] == 2


def test_time_limit_cap_applies_without_client_limit():
    cfg = _anneal_cfg({"anneal": {"time_limit_s": None, "max_iterations": 10**12}})
    assert cfg["time_limit_s"] == MAX_TIME_LIMIT_S
    assert _anneal_cfg({"anneal": {"time_limit_s": 10**6}})["time_limit_s"] == MAX_TIME_LIMIT_S
    assert _anneal_cfg({})["time_limit_s"] == min(1.8, MAX_TIME_LIMIT_S)


def test_plan_with_null_time_limit_still_stops(client, monkeypatch):
    monkeypatch.setattr(mig.api, "MAX_TIME_LIMIT_S", 0.05)
    anneal = {"seed": 1, "time_limit_s": None, "max_iterations": 10**12}
    response = client.post("/plan", json={"topology": make_topology(), "anneal": anneal})
    assert response.status_code == 200
    assert response.get_json()["data"]["anneal"]["iterations"] < 10**12


@pytest.mark.parametrize(
    "body",
    [
        [1, 2, 3],
        {"topology": [{"id": 1, "capacity": 1}]},
        {"topology": {"nodes": [1], "links": [], "tasks": []}},
        {"topology": {"nodes": [{"id": 1, "capacity": 1}], "tasks": [{"id": "a", "start": 1, "demand": 1}]}},
        {"topology": {"nodes": [{"id": 1, "capacity": 1}], "links": "none"}},
    ],
)
@pytest.mark.parametrize("path", ["/plan", "/routes"])
def test_malformed_bodies_get_400_envelope(client, path, body):
    response = client.post(path, json=body)
    assert response.status_code == 400
    payload = response.get_json()
    assert payload["ok"] is False
    assert payload["error"]


@pytest.mark.parametrize(
    "anneal",
    [["seed", 1], {"cooling_rate": "fast"}, {"t_start": None}, {"check_every": 0, "cooling_rate": 2}],
)
def test_plan_rejects_bad_anneal_settings(client, anneal):
    response = client.post("/plan", json={"topology": make_topology(), "anneal": anneal})
    assert response.status_code == 400
    assert response.get_json()["ok"] is False
