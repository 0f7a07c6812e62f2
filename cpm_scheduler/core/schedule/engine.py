"""One scheduling run: forward pass, backward pass, critical path.

The engine works in place on the caller's Task objects and never raises on
bad graphs: cyclic or pathological input yields a capped schedule and
``ScheduleResult.converged == False``. Only the opt-in ``reject_cycles``
setting turns a cycle into an error, before any pass runs.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Sequence

from cpm_scheduler.core.config import EngineConfig
from cpm_scheduler.core.cycles.cycle_guard import REPORT_LIMIT, describe_cycle, find_cycles
from cpm_scheduler.core.errors import CycleDetected
from cpm_scheduler.core.model import ScheduleResult, Task
from cpm_scheduler.core.schedule.backward_pass import backward_pass
from cpm_scheduler.core.schedule.critical_path import analyze_critical_path
from cpm_scheduler.core.schedule.forward_pass import forward_pass


logger = logging.getLogger(__name__)


def schedule_tasks(
    tasks: Sequence[Task],
    project_anchor: date,
    *,
    config: Optional[EngineConfig] = None,
) -> ScheduleResult:
    cfg = config or EngineConfig()
    task_list = list(tasks)

    if cfg.reject_cycles:
        cycles = find_cycles(task_list, limit=REPORT_LIMIT)
        if cycles:
            raise CycleDetected(
                code="E_CYCLE_DETECTED",
                message="; ".join(describe_cycle(c) for c in cycles),
                path=cycles[0][0],
            )

    for t in task_list:
        t.reset_schedule()

    if not task_list:
        return ScheduleResult(
            tasks=task_list,
            project_anchor=project_anchor,
            project_end=project_anchor,
            forward_passes=0,
            forward_converged=True,
            backward_passes=0,
            backward_converged=True,
        )

    fwd = forward_pass(task_list, project_anchor, cfg.max_passes)
    project_end = max(t.earliest_finish for t in task_list if t.earliest_finish is not None)
    bwd = backward_pass(task_list, project_end, cfg.max_passes)
    critical = analyze_critical_path(task_list)

    logger.info(
        "scheduled %d tasks from %s to %s (%d critical, passes fwd=%d bwd=%d)",
        len(task_list),
        project_anchor.isoformat(),
        project_end.isoformat(),
        len(critical),
        fwd.passes,
        bwd.passes,
    )

    return ScheduleResult(
        tasks=task_list,
        project_anchor=project_anchor,
        project_end=project_end,
        forward_passes=fwd.passes,
        forward_converged=fwd.converged,
        backward_passes=bwd.passes,
        backward_converged=bwd.converged,
    )
