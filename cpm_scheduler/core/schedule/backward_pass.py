from __future__ import annotations

import logging
from datetime import date
from typing import Mapping, Sequence

from cpm_scheduler.core.config import MAX_PASSES
from cpm_scheduler.core.model import PassOutcome, Relation, Task, window
from cpm_scheduler.core.schedule.ordering import sweep_order


logger = logging.getLogger(__name__)


# (successor id, relation, lag), keyed by predecessor id
_Outgoing = list[tuple[str, Relation, int]]


def backward_pass(tasks: Sequence[Task], project_end: date, max_passes: int = MAX_PASSES) -> PassOutcome:
    """Compute latest_start/latest_finish, seeded from project_end.

    Mirror of the forward pass: tasks are swept successors-first and every
    outgoing edge bounds the task's latest finish from the successor's
    current values. Bounds only tighten, and latest_start is always
    re-derived as latest_finish - duration.
    """

    end = project_end.toordinal()
    duration: dict[str, int] = {t.id: t.duration for t in tasks}

    outgoing: dict[str, _Outgoing] = {tid: [] for tid in duration}
    for t in tasks:
        for e in t.dependencies:
            if e.target_id in duration:
                outgoing[e.target_id].append((t.id, e.relation, e.lag))

    order = list(reversed(sweep_order(tasks)))

    finish: dict[str, int] = {t.id: end for t in tasks}
    passes = 0
    converged = False

    while passes < max_passes:
        passes += 1
        changed = False
        for t in order:
            lf = finish[t.id]
            for succ, rel, lag in outgoing[t.id]:
                lf = min(lf, _finish_bound(succ, t.id, rel, lag, finish, duration))
            if lf < finish[t.id]:
                finish[t.id] = lf
                changed = True
        if not changed:
            converged = True
            break

    if not converged:
        logger.warning(
            "backward pass did not converge after %d passes; schedule may be inconsistent "
            "(dependency cycle?)",
            passes,
        )

    shifted: list[str] = []
    for t in tasks:
        t.latest_start, t.latest_finish, moved = window(finish.get(t.id, end) - t.duration, t.duration)
        if moved:
            shifted.append(t.id)
    if shifted:
        logger.warning("latest dates of %s shifted to stay within the calendar range", ", ".join(shifted))

    logger.debug("backward pass: %d passes, converged=%s", passes, converged)
    return PassOutcome(passes=passes, converged=converged)


def _finish_bound(
    succ: str,
    pred: str,
    rel: Relation,
    lag: int,
    finish: Mapping[str, int],
    duration: Mapping[str, int],
) -> int:
    succ_lf = finish[succ]
    succ_ls = succ_lf - duration[succ]
    if rel is Relation.FINISH_TO_START:
        return succ_ls - lag
    if rel is Relation.START_TO_START:
        # bound on pred's latest start
        return succ_ls - lag + duration[pred]
    if rel is Relation.FINISH_TO_FINISH:
        return succ_lf - lag
    if rel is Relation.START_TO_FINISH:
        return succ_lf - lag + duration[pred]
    raise AssertionError(f"unhandled relation: {rel}")  # pragma: no cover
