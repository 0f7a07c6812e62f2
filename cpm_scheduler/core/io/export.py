from __future__ import annotations

from datetime import date
from typing import Any, Optional, Sequence

from cpm_scheduler.core.codec.edge_codec import format_canonical, format_edge, positional_indexer
from cpm_scheduler.core.model import ScheduleResult


def to_records(result: ScheduleResult, ordering: Optional[Sequence[str]] = None) -> list[dict[str, Any]]:
    """Plain rows for a Gantt renderer, one per task in result order.

    ``ordering`` is the displayed task order used for compact tokens; it
    defaults to the result's own order.
    """

    ids = list(ordering) if ordering is not None else [t.id for t in result.tasks]
    indexer = positional_indexer(ids)

    rows: list[dict[str, Any]] = []
    for t in result.tasks:
        rows.append(
            {
                "id": t.id,
                "name": t.name,
                "duration": t.duration,
                "earliest_start": _iso(t.earliest_start),
                "earliest_finish": _iso(t.earliest_finish),
                "latest_start": _iso(t.latest_start),
                "latest_finish": _iso(t.latest_finish),
                "slack": t.slack,
                "is_critical": t.is_critical,
                "depends_on": [format_edge(e, indexer) for e in t.dependencies],
                "dependencies": [format_canonical(e) for e in t.dependencies],
            }
        )
    return rows


def to_payload(result: ScheduleResult, ordering: Optional[Sequence[str]] = None) -> dict[str, Any]:
    return {
        "project_anchor": result.project_anchor.isoformat(),
        "project_end": result.project_end.isoformat(),
        "converged": result.converged,
        "forward_passes": result.forward_passes,
        "backward_passes": result.backward_passes,
        "critical_ids": result.critical_ids,
        "tasks": to_records(result, ordering),
    }


def critical_flags(result: ScheduleResult) -> dict[str, bool]:
    """The only field the persistence side writes back."""
    return {t.id: t.is_critical for t in result.tasks}


def _iso(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d is not None else None
