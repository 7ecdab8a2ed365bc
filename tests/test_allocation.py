import pathlib
import random
import sys

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from mig.cost_model import CostModel
from mig.policy.annealing import AnnealingPlanner
from mig.policy.greedy import GreedyPlanner
from mig.routing import RoutingTable
from mig.state import Link, Node, Task, TopologyState


def build(nodes, links, tasks):
    state = TopologyState(
        [Node(id=nid, capacity=cap) for nid, cap in nodes],
        [Link(a, b, cost, bw) for a, b, cost, bw in links],
        [Task(id=tid, start_node=start, demand=demand) for tid, start, demand in tasks],
    )
    state.validate()
    routes = RoutingTable.build(state)
    return state, CostModel(state, routes)


def random_instance(seed):
    rng = random.Random(seed)
    n = 8
    nodes = [(i, rng.randint(5, 25)) for i in range(1, n + 1)]
    links = [(i, i + 1, rng.randint(1, 9), 2) for i in range(1, n)]
    links += [(rng.randint(1, n), rng.randint(1, n), rng.randint(1, 9), 1) for _ in range(6)]
    tasks = [(t, rng.randint(1, n), rng.randint(1, 6)) for t in range(1, 21)]
    return build(nodes, links, tasks)


def fixed_anneal(seed=11, iterations=20000, **extra):
    return {"seed": seed, "max_iterations": iterations, "time_limit_s": None, **extra}


# ----------------------------- greedy -----------------------------

def test_greedy_places_largest_task_first():
    state, cm = build([(1, 10), (2, 10)], [(1, 2, 1, 1)], [(1, 1, 4), (2, 1, 8)])
    out = GreedyPlanner(state, cm).place()

    # task 2 (demand 8) keeps node 1; task 1 no longer fits there
    assert out["assignments"] == {1: 2, 2: 1}
    assert state.task(1).migration_cost == 4
    assert state.task(2).migration_cost == 0
    assert state.loads() == {1: 8, 2: 4}
    assert out["total_cost"] == 4


def test_greedy_breaks_cost_ties_by_lowest_node_id():
    state, cm = build(
        [(1, 0), (2, 10), (3, 10)],
        [(1, 3, 1, 1), (1, 2, 1, 1)],
        [(1, 1, 5)],
    )
    GreedyPlanner(state, cm).place()
    assert state.task(1).end_node == 2


def test_greedy_skips_unreachable_nodes():
    state, cm = build([(1, 0), (2, 50), (3, 10)], [(1, 3, 9, 1)], [(1, 1, 5)])
    GreedyPlanner(state, cm).place()
    assert state.task(1).end_node == 3
    assert state.task(1).migration_cost == 45


def test_greedy_leaves_infeasible_task_on_start_node():
    state, cm = build([(1, 2), (2, 2)], [(1, 2, 1, 1)], [(1, 1, 5), (2, 2, 1)])
    out = GreedyPlanner(state, cm).place()

    t = state.task(1)
    assert out["infeasible"] == [1]
    assert t.end_node == 1 and t.migration_cost == 0 and not t.placed
    assert state.loads() == {1: 0, 2: 1}
    assert cm.check_capacity() == []


def test_greedy_respects_capacity_on_random_instances():
    for seed in range(5):
        state, cm = random_instance(seed)
        GreedyPlanner(state, cm).place()
        assert cm.check_capacity() == []
        for t in state.tasks:
            assert t.migration_cost == cm.migration_cost(t, t.end_node)


# ----------------------------- annealing -----------------------------

def test_annealing_escapes_greedy_local_minimum():
    # Greedy gives node 2 to task 1 (larger demand), so task 2 pays 5 * 5 for node 3.
    state, cm = build(
        [(1, 0), (2, 6), (3, 100), (4, 0)],
        [(1, 2, 1, 1), (1, 3, 3, 1), (4, 2, 1, 1), (4, 3, 10, 1)],
        [(1, 1, 6), (2, 4, 5)],
    )
    greedy = GreedyPlanner(state, cm).place()
    assert greedy["total_cost"] == 31

    stats = AnnealingPlanner(state, cm, cfg=fixed_anneal()).optimize()
    assert stats.best_cost == 23
    assert state.assignment() == {1: 3, 2: 2}
    assert cm.total_cost() == 23
    assert cm.check_capacity() == []


def test_annealing_never_worse_than_greedy_and_keeps_capacity():
    for seed in range(4):
        state, cm = random_instance(seed)
        greedy = GreedyPlanner(state, cm).place()
        stats = AnnealingPlanner(state, cm, cfg=fixed_anneal(seed=seed, iterations=5000)).optimize()

        assert stats.best_cost <= greedy["total_cost"]
        assert cm.total_cost() == stats.best_cost
        assert cm.check_capacity() == []
        bests = [cost for _, cost in stats.history]
        assert bests == sorted(bests, reverse=True)
        assert bests[0] == greedy["total_cost"]


def test_restore_is_idempotent():
    state, cm = random_instance(7)
    GreedyPlanner(state, cm).place()
    planner = AnnealingPlanner(state, cm, cfg=fixed_anneal(iterations=3000))
    planner.optimize()

    snap = planner.snapshot(cm.total_cost())
    planner.restore(snap)
    first = (state.assignment(), state.loads())
    planner.restore(snap)
    assert (state.assignment(), state.loads()) == first


def test_same_seed_same_outcome():
    outcomes = []
    for _ in range(2):
        state, cm = random_instance(3)
        GreedyPlanner(state, cm).place()
        stats = AnnealingPlanner(state, cm, cfg=fixed_anneal(seed=42, iterations=4000)).optimize()
        outcomes.append((state.assignment(), stats.accepted, stats.best_cost))
    assert outcomes[0] == outcomes[1]


def test_unplaced_tasks_are_never_moved():
    state, cm = build([(1, 2), (2, 2)], [(1, 2, 1, 1)], [(1, 1, 5), (2, 2, 1)])
    GreedyPlanner(state, cm).place()
    AnnealingPlanner(state, cm, cfg=fixed_anneal(iterations=500)).optimize()

    assert state.task(1).end_node == 1
    assert not state.task(1).placed
    assert state.loads()[1] + state.loads()[2] == 1


class TickClock:
    def __init__(self, step):
        self.step = step
        self.now = 0.0

    def __call__(self):
        self.now += self.step
        return self.now


def test_time_budget_is_checked_every_k_iterations():
    state, cm = random_instance(1)
    GreedyPlanner(state, cm).place()
    cfg = {"seed": 1, "time_limit_s": 1.0, "check_every": 10}
    stats = AnnealingPlanner(state, cm, cfg=cfg, clock=TickClock(0.3)).optimize()
    # checks at iterations 0, 10, 20, 30 see 0.3, 0.6, 0.9, 1.2 elapsed
    assert stats.iterations == 30


def test_temperature_reheats_instead_of_stopping():
    state, cm = random_instance(2)
    GreedyPlanner(state, cm).place()
    cfg = fixed_anneal(iterations=10, t_start=10.0, t_end=1.0, cooling_rate=0.5, reheat_fraction=0.5)
    stats = AnnealingPlanner(state, cm, cfg=cfg).optimize()
    assert stats.iterations == 10
    assert stats.reheats == 3


def test_annealing_requires_some_budget():
    state, cm = random_instance(0)
    with pytest.raises(ValueError):
        AnnealingPlanner(state, cm, cfg={"time_limit_s": None, "max_iterations": None})
    with pytest.raises(ValueError):
        AnnealingPlanner(state, cm, cfg={"cooling_rate": 1.5})


def test_annealing_rejects_zero_check_interval():
    state, cm = random_instance(0)
    with pytest.raises(ValueError, match="check_every"):
        AnnealingPlanner(state, cm, cfg={"check_every": 0})


def test_best_cost_matches_restored_assignment_with_float_costs():
    rng = random.Random(4)
    n = 6
    nodes = [(1, 0), (2, 4), (3, 12), (4, 8), (5, 10), (6, 15)]
    links = [(i, i + 1, rng.random() * 0.3 + 0.1, 2) for i in range(1, n)]
    links += [(1, n, 0.7, 1), (2, 5, 0.3, 1)]
    tasks = [(t, rng.randint(1, n), rng.randint(1, 5)) for t in range(1, 13)]
    state, cm = build(nodes, links, tasks)
    GreedyPlanner(state, cm).place()

    stats = AnnealingPlanner(state, cm, cfg=fixed_anneal(seed=9, iterations=5000)).optimize()
    assert stats.best_cost == cm.total_cost()
    assert not cm.check_capacity()
