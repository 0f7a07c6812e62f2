from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ScheduleError(Exception):
    """Base error envelope. Boundary code collects or raises these; the passes never do."""

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.file:
            parts.append(self.file)
        if self.path:
            parts.append(self.path)
        loc = ":".join(parts) if parts else "<tasks>"
        return f"{loc}: {self.code}: {self.message}"


class ScheduleLoadError(ScheduleError):
    pass


class ScheduleValidationError(ScheduleError):
    pass


class InvalidToken(ScheduleValidationError):
    pass


class UnknownReference(ScheduleValidationError):
    pass


class SelfReference(ScheduleValidationError):
    pass


class CycleDetected(ScheduleValidationError):
    pass


def relocate(err: ScheduleError, *, file: Optional[str], path: Optional[str]) -> ScheduleError:
    """Return a copy of err (same class) pinned to a file/path location."""
    return type(err)(code=err.code, message=err.message, file=file, path=path)
