from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional


class Relation(Enum):
    """Precedence semantics, valued by their boundary code."""

    FINISH_TO_START = "FC"
    START_TO_START = "CC"
    FINISH_TO_FINISH = "FF"
    START_TO_FINISH = "CF"

    @property
    def code(self) -> str:
        return self.value

    @classmethod
    def from_code(cls, code: str) -> "Relation":
        return cls(code.strip().upper())


@dataclass(frozen=True)
class DependencyEdge:
    target_id: str  # the predecessor
    relation: Relation = Relation.FINISH_TO_START
    lag: int = 0  # negative = lead


@dataclass
class Task:
    id: str
    duration: int
    dependencies: list[DependencyEdge] = field(default_factory=list)
    anchor_start: Optional[date] = None
    name: Optional[str] = None

    earliest_start: Optional[date] = None
    earliest_finish: Optional[date] = None
    latest_start: Optional[date] = None
    latest_finish: Optional[date] = None
    slack: Optional[int] = None
    is_critical: bool = False

    def reset_schedule(self) -> None:
        self.earliest_start = None
        self.earliest_finish = None
        self.latest_start = None
        self.latest_finish = None
        self.slack = None
        self.is_critical = False


@dataclass(frozen=True)
class PassOutcome:
    passes: int
    converged: bool


@dataclass(frozen=True)
class ScheduleResult:
    tasks: list[Task]
    project_anchor: date
    project_end: date
    forward_passes: int
    forward_converged: bool
    backward_passes: int
    backward_converged: bool

    @property
    def converged(self) -> bool:
        return self.forward_converged and self.backward_converged

    @property
    def critical_ids(self) -> list[str]:
        return [t.id for t in self.tasks if t.is_critical]


_MIN_DAY = date.min.toordinal()
_MAX_DAY = date.max.toordinal()


def window(start: int, duration: int) -> tuple[date, date, bool]:
    """(start, finish, shifted) as dates for a day-ordinal start.

    The whole window is shifted to stay representable, so finish - start is
    always the duration. ``shifted`` tells the caller it happened.
    """
    clamped = min(max(start, _MIN_DAY), _MAX_DAY - duration)
    return date.fromordinal(clamped), date.fromordinal(clamped + duration), clamped != start


def as_date(v: Any) -> Optional[date]:
    """Accept a date, a datetime or an ISO string; anything else is None."""
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    if isinstance(v, str):
        try:
            return date.fromisoformat(v.strip())
        except ValueError:
            return None
    return None
