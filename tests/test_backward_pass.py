from datetime import date, timedelta

from cpm_scheduler.core.model import DependencyEdge, Relation, Task
from cpm_scheduler.core.schedule.backward_pass import backward_pass
from cpm_scheduler.core.schedule.forward_pass import forward_pass


D0 = date(2024, 1, 1)


def day(n: int) -> date:
    return D0 + timedelta(days=n)


def edge(target, relation=Relation.FINISH_TO_START, lag=0):
    return DependencyEdge(target_id=target, relation=relation, lag=lag)


def _network():
    return [
        Task(id="A", duration=3),
        Task(id="B", duration=4, dependencies=[edge("A", lag=1)]),
        Task(id="C", duration=2, dependencies=[edge("A", Relation.START_TO_START, 2)]),
        Task(id="D", duration=5, dependencies=[edge("B"), edge("C", Relation.FINISH_TO_FINISH, 3)]),
        Task(id="E", duration=1, dependencies=[edge("C", Relation.START_TO_FINISH, 1)]),
    ]


def test_unconstrained_tasks_finish_at_project_end():
    a = Task(id="A", duration=3)
    b = Task(id="B", duration=7)
    outcome = backward_pass([a, b], day(10))
    assert outcome.converged
    assert a.latest_finish == day(10)
    assert a.latest_start == day(7)
    assert b.latest_start == day(3)


def test_relation_bounds():
    succ_ls = 10  # successor S: duration 4, latest window [10, 14]
    end = day(14)

    def run(rel, lag):
        pred = Task(id="P", duration=3)
        succ = Task(id="S", duration=4, dependencies=[edge("P", rel, lag)])
        backward_pass([pred, succ], end)
        return pred

    assert run(Relation.FINISH_TO_START, 2).latest_finish == day(succ_ls - 2)
    assert run(Relation.START_TO_START, 1).latest_start == day(succ_ls - 1)
    assert run(Relation.FINISH_TO_FINISH, 0).latest_finish == day(14)
    assert run(Relation.FINISH_TO_FINISH, 3).latest_finish == day(11)
    assert run(Relation.START_TO_FINISH, 5).latest_start == day(9)


def test_bounds_only_tighten():
    # a negative lag would push the bound past project end; it must not loosen
    pred = Task(id="P", duration=3)
    succ = Task(id="S", duration=4, dependencies=[edge("P", Relation.FINISH_TO_FINISH, -6)])
    backward_pass([pred, succ], day(20))
    assert pred.latest_finish == day(20)


def test_duration_invariant_holds():
    tasks = _network()
    forward_pass(tasks, D0)
    end = max(t.earliest_finish for t in tasks)
    backward_pass(tasks, end)
    for t in tasks:
        assert t.latest_finish - t.latest_start == timedelta(days=t.duration)


def test_latest_finish_never_increases_between_passes():
    end = day(30)
    history: list[dict[str, date]] = []
    for cap in range(1, 8):
        tasks = _network()
        backward_pass(tasks, end, max_passes=cap)
        history.append({t.id: t.latest_finish for t in tasks})

    for prev, cur in zip(history, history[1:]):
        for tid in prev:
            assert cur[tid] <= prev[tid]


def test_cycle_is_capped_not_hung():
    a = Task(id="A", duration=2, dependencies=[edge("B")])
    b = Task(id="B", duration=3, dependencies=[edge("A")])
    outcome = backward_pass([a, b], day(50), max_passes=10)
    assert outcome.converged is False
    assert outcome.passes == 10
    assert a.latest_finish is not None
