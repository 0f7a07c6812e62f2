from __future__ import annotations

import json
import logging
from datetime import date
from typing import NoReturn, Optional

import typer

from cpm_scheduler.core.codec.edge_codec import (
    format_canonical,
    format_edge,
    parse_edge,
    positional_indexer,
    positional_resolver,
)
from cpm_scheduler.core.config import ConfigError, load_config
from cpm_scheduler.core.cycles.cycle_guard import REPORT_LIMIT, describe_cycle, find_cycles
from cpm_scheduler.core.errors import (
    CycleDetected,
    ScheduleError,
    ScheduleLoadError,
    ScheduleValidationError,
)
from cpm_scheduler.core.io.export import to_payload
from cpm_scheduler.core.io.load_tasks import load_tasks
from cpm_scheduler.core.model import ScheduleResult
from cpm_scheduler.core.schedule.engine import schedule_tasks
from cpm_scheduler.core.validate.validate_tasks import resolve_project_anchor, validate_tasks

app = typer.Typer(add_completion=False, no_args_is_help=True)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@app.callback()
def _callback(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level: DEBUG|INFO|WARNING|ERROR"),
) -> None:
    """Critical-path scheduler CLI."""
    _configure_logging(log_level)


@app.command("schedule")
def schedule(
    path: str = typer.Argument(..., help="Path to a task file (.yaml/.yml/.json)"),
    anchor: Optional[str] = typer.Option(
        None, "--anchor", help="Project anchor date (YYYY-MM-DD); defaults to project_start, then today"
    ),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
    max_passes: Optional[int] = typer.Option(None, "--max-passes", help="Relaxation pass cap per pass"),
    strict_cycles: Optional[bool] = typer.Option(
        None,
        "--strict-cycles/--tolerate-cycles",
        help="Refuse cyclic task lists instead of returning a capped schedule",
    ),
    config_file: Optional[str] = typer.Option(None, "--config", help="Optional YAML engine config"),
) -> None:
    """Compute early/late dates, slack and critical flags for a task file."""
    if format not in ("text", "json"):
        _fail(
            ScheduleValidationError(
                code="E_SCHEDULE_UNKNOWN_FORMAT",
                message=f"unknown format: {format} (choose one of: text, json)",
                path="format",
            ),
            exit_code=2,
        )

    override: Optional[date] = None
    if anchor is not None:
        try:
            override = date.fromisoformat(anchor)
        except ValueError:
            _fail(
                ScheduleValidationError(
                    code="E_INVALID_ANCHOR",
                    message=f"--anchor must be an ISO date (YYYY-MM-DD), got {anchor!r}",
                    path="anchor",
                ),
                exit_code=2,
            )

    try:
        cfg = load_config(config_file, max_passes=max_passes, reject_cycles=strict_cycles)
    except FileNotFoundError:
        _fail(
            ScheduleLoadError(
                code="E_CONFIG_FILE_NOT_FOUND",
                message=f"config file not found: {config_file}",
                path="config",
            ),
            exit_code=1,
        )
    except ConfigError as e:
        _fail(
            ScheduleValidationError(code="E_CONFIG_INVALID", message=str(e), path="config"),
            exit_code=2,
        )

    try:
        doc = load_tasks(path)
    except ScheduleLoadError as e:
        _fail(e, exit_code=1)

    tasks, errors = validate_tasks(doc)
    if errors or tasks is None:
        _print_errors(errors)
        raise typer.Exit(code=2)

    project_anchor = resolve_project_anchor(doc, override, date.today())
    try:
        result = schedule_tasks(tasks, project_anchor, config=cfg)
    except CycleDetected as e:
        _fail(
            CycleDetected(code=e.code, message=e.message, file=doc.get("__file__"), path=e.path),
            exit_code=2,
        )

    if format == "json":
        typer.echo(json.dumps(to_payload(result), indent=2, sort_keys=True))
    else:
        typer.echo(_render_text(result))

    if not result.converged:
        typer.echo(
            f"WARN: schedule did not converge within {cfg.max_passes} passes; "
            "dates may violate dependencies (run `cpm check` for cycles)",
            err=True,
        )


@app.command("check")
def check(
    path: str = typer.Argument(..., help="Path to a task file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Validate a task file and report dependency cycles."""
    if format not in ("text", "json"):
        _fail(
            ScheduleValidationError(
                code="E_CHECK_UNKNOWN_FORMAT",
                message=f"unknown format: {format} (choose one of: text, json)",
                path="format",
            ),
            exit_code=2,
        )

    def _to_item(e: ScheduleError) -> dict:
        source = "load" if isinstance(e, ScheduleLoadError) else "validate"
        if isinstance(e, CycleDetected):
            source = "cycles"
        return {
            "code": e.code,
            "message": e.message,
            "file": e.file,
            "path": e.path,
            "severity": "error",
            "source": source,
        }

    def _emit_json(ok: bool, errors: list[ScheduleError], exit_code: int, task_count: Optional[int]) -> None:
        payload = {
            "tool": "cpm",
            "command": "check",
            "ok": ok,
            "task_count": task_count,
            "error_count": len(errors),
            "errors": [_to_item(e) for e in errors],
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        raise typer.Exit(code=exit_code)

    try:
        doc = load_tasks(path)
    except ScheduleLoadError as e:
        if format == "json":
            _emit_json(False, [e], 1, None)
        _fail(e, exit_code=1)

    tasks, errors = validate_tasks(doc)
    if tasks is not None:
        file = doc.get("__file__")
        errors = [
            CycleDetected(code="E_CYCLE_DETECTED", message=describe_cycle(c), file=file, path=c[0])
            for c in find_cycles(tasks, limit=REPORT_LIMIT)
        ]

    if format == "json":
        if errors:
            _emit_json(False, errors, 2, None if tasks is None else len(tasks))
        _emit_json(True, [], 0, len(tasks or []))

    if errors:
        _print_errors(errors)
        raise typer.Exit(code=2)
    typer.echo(f"OK: {len(tasks or [])} tasks, no dependency cycles")


@app.command("edge")
def edge(
    token: str = typer.Argument(..., help="Compact dependency token, e.g. 3FC+5"),
    tasks: str = typer.Option(..., "--tasks", help="Comma-separated task ids in display order"),
    source: Optional[str] = typer.Option(None, "--source", help="Id of the task being edited"),
) -> None:
    """Parse a compact dependency token and print its canonical form."""
    ids = [t.strip() for t in tasks.split(",") if t.strip()]
    try:
        parsed = parse_edge(token, positional_resolver(ids), source_id=source)
    except ScheduleValidationError as e:
        _fail(e, exit_code=2)

    typer.echo(format_canonical(parsed))
    typer.echo(f"normalized: {format_edge(parsed, positional_indexer(ids))}")


def _render_text(result: ScheduleResult) -> str:
    lines = [
        f"Project: {result.project_anchor.isoformat()} -> {result.project_end.isoformat()} "
        f"({len(result.tasks)} tasks, {len(result.critical_ids)} critical)"
    ]
    header = f"{'#':>3}  {'id':<12} {'ES':<10} {'EF':<10} {'LS':<10} {'LF':<10} {'slack':>5}  crit"
    lines.append(header)
    for i, t in enumerate(result.tasks, start=1):
        lines.append(
            f"{i:>3}  {t.id:<12} {_fmt(t.earliest_start)} {_fmt(t.earliest_finish)} "
            f"{_fmt(t.latest_start)} {_fmt(t.latest_finish)} {_fmt_slack(t.slack)}  "
            f"{'*' if t.is_critical else ''}"
        )
    return "\n".join(lines)


def _fmt(d: Optional[date]) -> str:
    return d.isoformat() if d is not None else "-".ljust(10)


def _fmt_slack(slack: Optional[int]) -> str:
    return f"{slack:>5}" if slack is not None else f"{'-':>5}"


class _EchoHandler(logging.Handler):
    """Route log records through typer.echo so they follow the current stderr."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            typer.echo(self.format(record), err=True)
        except Exception:  # pragma: no cover
            self.handleError(record)


def _configure_logging(level: str) -> None:
    pkg_logger = logging.getLogger("cpm_scheduler")
    for h in list(pkg_logger.handlers):
        if isinstance(h, _EchoHandler):
            pkg_logger.removeHandler(h)
    handler = _EchoHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    pkg_logger.addHandler(handler)
    pkg_logger.setLevel(getattr(logging, level.upper(), logging.WARNING))


def _fail(err: ScheduleError, *, exit_code: int) -> NoReturn:
    _print_errors([err])
    raise typer.Exit(code=exit_code)


def _print_errors(errors: list[ScheduleError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="cpm")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
