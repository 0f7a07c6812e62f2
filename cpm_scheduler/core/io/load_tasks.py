from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import yaml

from cpm_scheduler.core.errors import ScheduleLoadError
from cpm_scheduler.core.model import as_date


# suffix -> (error code, parser, parse failure)
_Parser = tuple[str, Callable[[str], Any], type[Exception]]

_PARSERS: dict[str, _Parser] = {
    ".yaml": ("E_YAML_PARSE", yaml.safe_load, yaml.YAMLError),
    ".yml": ("E_YAML_PARSE", yaml.safe_load, yaml.YAMLError),
    ".json": ("E_JSON_PARSE", json.loads, json.JSONDecodeError),
}


def load_tasks(path: str) -> dict[str, Any]:
    """Read a task file into a document for validate_tasks.

    A task file is either a mapping with ``tasks`` (and optionally
    ``project_start``) or a bare list of task rows. project_start comes back
    as a date when it parses; anything else is passed through untouched so
    validation can report it. Rows are not looked at here.
    """

    p = Path(path)
    if not p.is_file():
        raise ScheduleLoadError(code="E_FILE_NOT_FOUND", message="file does not exist", file=str(p))

    parser = _PARSERS.get(p.suffix.lower())
    if parser is None:
        raise ScheduleLoadError(
            code="E_UNSUPPORTED_FORMAT",
            message="task files are .yaml/.yml or .json",
            file=str(p),
        )
    code, parse, failure = parser

    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ScheduleLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        data = parse(text)
    except failure as e:
        raise ScheduleLoadError(code=code, message=str(e), file=str(p)) from e

    if isinstance(data, list):
        data = {"tasks": data}
    if not isinstance(data, dict):
        raise ScheduleLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="expected a mapping with `tasks` or a list of tasks",
            file=str(p),
        )

    raw_start = data.get("project_start")
    return {
        "project_start": as_date(raw_start) or raw_start,
        "tasks": data.get("tasks"),
        "__file__": str(p),
    }
