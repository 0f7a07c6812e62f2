from datetime import date

from cpm_scheduler.core.io.export import critical_flags, to_payload, to_records
from cpm_scheduler.core.model import DependencyEdge, Relation, Task
from cpm_scheduler.core.schedule.engine import schedule_tasks


def _result():
    tasks = [
        Task(id="A", duration=5, name="Dig"),
        Task(id="B", duration=3, dependencies=[DependencyEdge(target_id="A", lag=2)]),
        Task(id="C", duration=4, dependencies=[DependencyEdge(target_id="B", relation=Relation.START_TO_START)]),
        Task(id="D", duration=1),
    ]
    return schedule_tasks(tasks, date(2024, 1, 1))


def test_records_carry_dates_and_both_edge_notations():
    rows = to_records(_result())
    b = rows[1]
    assert b["id"] == "B"
    assert b["earliest_start"] == "2024-01-08"
    assert b["earliest_finish"] == "2024-01-11"
    assert b["latest_start"] == "2024-01-08"
    assert b["slack"] == 0
    assert b["is_critical"] is True
    assert b["depends_on"] == ["1FC+2"]
    assert b["dependencies"] == ["A:FC:+2"]
    assert rows[2]["depends_on"] == ["2CC"]
    assert rows[0]["name"] == "Dig"


def test_records_use_display_ordering():
    rows = to_records(_result(), ordering=["D", "C", "B"])
    assert rows[1]["depends_on"] == ["?FC+2"]
    assert rows[2]["depends_on"] == ["3CC"]


def test_payload_and_critical_flags():
    result = _result()
    payload = to_payload(result)
    assert payload["project_anchor"] == "2024-01-01"
    assert payload["project_end"] == "2024-01-12"
    assert payload["converged"] is True
    assert payload["critical_ids"] == ["A", "B", "C"]
    assert critical_flags(result) == {"A": True, "B": True, "C": True, "D": False}
