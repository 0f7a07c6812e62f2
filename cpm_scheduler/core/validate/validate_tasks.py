from __future__ import annotations

from datetime import date
from typing import Any, Iterable, Optional, cast

from cpm_scheduler.core.codec.edge_codec import parse_edge, positional_resolver
from cpm_scheduler.core.errors import ScheduleError, ScheduleValidationError, relocate
from cpm_scheduler.core.model import DependencyEdge, Task, as_date


def validate_tasks(doc: dict[str, Any]) -> tuple[Optional[list[Task]], list[ScheduleError]]:
    """Turn a loaded task document into Task objects.

    Dependency tokens are resolved against the file's task order (1-based).
    Returns (tasks, errors). Tasks is None when errors exist; nothing should be
    scheduled in that case.
    """

    file = cast(Optional[str], doc.get("__file__"))
    errors: list[ScheduleError] = []

    raw_tasks = doc.get("tasks")
    if not isinstance(raw_tasks, list):
        errors.append(
            ScheduleValidationError(
                code="E_REQUIRED_FIELD",
                message="tasks is required and must be an array",
                file=file,
                path="tasks",
            )
        )
        return None, _sorted(errors)

    if doc.get("project_start") is not None and as_date(doc.get("project_start")) is None:
        errors.append(
            ScheduleValidationError(
                code="E_INVALID_DATE",
                message="project_start must be an ISO date (YYYY-MM-DD)",
                file=file,
                path="project_start",
            )
        )

    # First pass: ids, so positions resolve even for rows that fail later.
    ordering: list[Optional[str]] = []
    seen: set[str] = set()
    for i, raw in enumerate(raw_tasks):
        tid = _task_id(raw)
        ordering.append(tid)
        if not isinstance(raw, dict):
            errors.append(
                ScheduleValidationError(
                    code="E_INVALID_TYPE",
                    message="task must be an object",
                    file=file,
                    path=f"tasks[{i}]",
                )
            )
            continue
        if tid is None:
            errors.append(
                ScheduleValidationError(
                    code="E_REQUIRED_FIELD",
                    message="id is required and must be a non-empty string",
                    file=file,
                    path=f"tasks[{i}].id",
                )
            )
            continue
        if tid in seen:
            errors.append(
                ScheduleValidationError(
                    code="E_DUPLICATE_ID",
                    message=f"duplicate task id: {tid}",
                    file=file,
                    path=f"tasks[{i}].id",
                )
            )
        seen.add(tid)

    resolve = positional_resolver([tid or "" for tid in ordering])

    def resolver(position: int) -> Optional[str]:
        return resolve(position) or None

    tasks: list[Task] = []
    for i, raw in enumerate(raw_tasks):
        tid = ordering[i]
        if tid is None or not isinstance(raw, dict):
            continue
        task_path = f"tasks[{i}]"

        duration = raw.get("duration")
        if isinstance(duration, bool) or not isinstance(duration, int):
            errors.append(
                ScheduleValidationError(
                    code="E_INVALID_TYPE",
                    message="duration is required and must be an integer number of days",
                    file=file,
                    path=f"{task_path}.duration",
                )
            )
            continue
        if duration < 1:
            errors.append(
                ScheduleValidationError(
                    code="E_INVALID_DURATION",
                    message=f"duration must be at least 1 day, got {duration}",
                    file=file,
                    path=f"{task_path}.duration",
                )
            )
            continue

        anchor_raw = raw.get("anchor_start")
        anchor_start = as_date(anchor_raw)
        if anchor_raw is not None and anchor_start is None:
            errors.append(
                ScheduleValidationError(
                    code="E_INVALID_DATE",
                    message="anchor_start must be an ISO date (YYYY-MM-DD)",
                    file=file,
                    path=f"{task_path}.anchor_start",
                )
            )
            continue

        name = raw.get("name")
        if name is not None and not isinstance(name, str):
            errors.append(
                ScheduleValidationError(
                    code="E_INVALID_TYPE",
                    message="name must be a string",
                    file=file,
                    path=f"{task_path}.name",
                )
            )

        tokens = raw.get("depends_on", [])
        if tokens is None:
            tokens = []
        if not isinstance(tokens, list):
            errors.append(
                ScheduleValidationError(
                    code="E_INVALID_TYPE",
                    message="depends_on must be an array of dependency tokens",
                    file=file,
                    path=f"{task_path}.depends_on",
                )
            )
            continue

        edges: list[DependencyEdge] = []
        for j, tok in enumerate(tokens):
            # YAML reads a bare row number as an int.
            token = str(tok) if isinstance(tok, int) and not isinstance(tok, bool) else tok
            try:
                edges.append(parse_edge(token, resolver, source_id=tid))
            except ScheduleValidationError as e:
                errors.append(relocate(e, file=file, path=f"{task_path}.depends_on[{j}]"))

        tasks.append(
            Task(
                id=tid,
                duration=duration,
                dependencies=edges,
                anchor_start=anchor_start,
                name=cast(Optional[str], name),
            )
        )

    if errors:
        return None, _sorted(errors)
    return tasks, []


def resolve_project_anchor(doc: dict[str, Any], override: Optional[date], today: date) -> date:
    """Anchor precedence: explicit override, then the file's project_start, then today."""
    if override is not None:
        return override
    start = as_date(doc.get("project_start"))
    if start is not None:
        return start
    return today


def _task_id(raw: Any) -> Optional[str]:
    if not isinstance(raw, dict):
        return None
    tid = raw.get("id")
    if isinstance(tid, int) and not isinstance(tid, bool):
        return str(tid)
    if isinstance(tid, str) and tid.strip():
        return tid.strip()
    return None


def _sorted(errors: Iterable[ScheduleError]) -> list[ScheduleError]:
    return sorted(
        list(errors),
        key=lambda e: (
            e.file or "",
            e.path or "",
            e.code,
        ),
    )
