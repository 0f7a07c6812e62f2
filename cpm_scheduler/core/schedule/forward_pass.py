from __future__ import annotations

import logging
from datetime import date
from typing import Mapping, Sequence

from cpm_scheduler.core.config import MAX_PASSES
from cpm_scheduler.core.model import PassOutcome, Relation, Task, window
from cpm_scheduler.core.schedule.ordering import sweep_order


logger = logging.getLogger(__name__)


def forward_pass(tasks: Sequence[Task], project_anchor: date, max_passes: int = MAX_PASSES) -> PassOutcome:
    """Compute earliest_start/earliest_finish for every task by relaxation.

    Tasks are swept predecessors-first, each reading the starts already
    updated in the same pass, so an acyclic network settles in one pass and
    the next one confirms it. Tasks on a cycle keep moving until max_passes;
    the capped result is still written back and may violate some constraints.
    """

    anchor = project_anchor.toordinal()
    by_id: dict[str, Task] = {t.id: t for t in tasks}
    order = sweep_order(tasks)

    start: dict[str, int] = {t.id: anchor for t in tasks}
    passes = 0
    converged = False

    while passes < max_passes:
        passes += 1
        changed = False
        for t in order:
            candidate = _candidate_start(t, start, by_id, anchor)
            if candidate != start[t.id]:
                start[t.id] = candidate
                changed = True
        if not changed:
            converged = True
            break

    if not converged:
        logger.warning(
            "forward pass did not converge after %d passes; schedule may be inconsistent "
            "(dependency cycle?)",
            passes,
        )

    shifted: list[str] = []
    for t in tasks:
        t.earliest_start, t.earliest_finish, moved = window(start.get(t.id, anchor), t.duration)
        if moved:
            shifted.append(t.id)
    if shifted:
        logger.warning("earliest dates of %s shifted to stay within the calendar range", ", ".join(shifted))

    logger.debug("forward pass: %d passes, converged=%s", passes, converged)
    return PassOutcome(passes=passes, converged=converged)


def _candidate_start(t: Task, start: Mapping[str, int], by_id: Mapping[str, Task], anchor: int) -> int:
    bounds: list[int] = []
    for edge in t.dependencies:
        pred = by_id.get(edge.target_id)
        if pred is None:
            continue
        es = start[pred.id]
        ef = es + pred.duration
        rel = edge.relation
        if rel is Relation.FINISH_TO_START:
            bounds.append(ef + edge.lag)
        elif rel is Relation.START_TO_START:
            bounds.append(es + edge.lag)
        elif rel is Relation.FINISH_TO_FINISH:
            bounds.append(ef + edge.lag - t.duration)
        elif rel is Relation.START_TO_FINISH:
            bounds.append(es + edge.lag - t.duration)
        else:  # pragma: no cover
            raise AssertionError(f"unhandled relation: {rel}")

    if bounds:
        return max(anchor, max(bounds))
    if t.anchor_start is not None:
        return max(anchor, t.anchor_start.toordinal())
    return anchor
