from __future__ import annotations

from typing import Sequence

from cpm_scheduler.core.model import Task


def analyze_critical_path(tasks: Sequence[Task]) -> list[str]:
    """Write slack and is_critical for every fully scheduled task.

    Returns the critical task ids in input order. That is a set, not an
    ordered path; callers wanting a chain follow zero-slack edges themselves.
    """

    critical: list[str] = []
    for t in tasks:
        if t.earliest_start is None or t.latest_start is None:
            continue
        t.slack = (t.latest_start - t.earliest_start).days
        t.is_critical = t.slack <= 0
        if t.is_critical:
            critical.append(t.id)
    return critical
