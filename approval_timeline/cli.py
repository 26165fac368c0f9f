from __future__ import annotations

import json
from dataclasses import asdict
from datetime import date
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer

from approval_timeline.core.errors import (
    CatalogLoadError,
    CatalogRejected,
    CatalogValidationError,
    TimelineError,
)
from approval_timeline.core.io.load_catalog import load_catalog
from approval_timeline.core.io.serialize import simulated_to_dict, timeline_to_dict
from approval_timeline.core.model import Catalog, SimulatedTimeline, Task, Timeline
from approval_timeline.core.query.query import DEFAULT_NEXT_LIMIT, compare_timelines, next_tasks
from approval_timeline.core.scenario.scenario_config import ScenarioConfigError, load_and_merge
from approval_timeline.core.scenario.transform import Scenario, transform
from approval_timeline.core.schedule.schedule import schedule
from approval_timeline.core.simulate.simulate import simulate
from approval_timeline.core.validate.validate_tasks import validate_tasks

app = typer.Typer(add_completion=False, no_args_is_help=True)

FORMATS = ("text", "json")


@app.callback()
def _callback() -> None:
    """Approval timeline CLI."""
    return


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to a task catalog (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Validate a task catalog: shape, dependencies, durations and cycles."""
    _check_format("validate", format)
    catalog = _load(path, "validate", format)

    validated, errors = validate_tasks(catalog.tasks, file=catalog.file)
    if errors:
        _fail("validate", format, errors, exit_code=2)
    assert validated is not None

    if format == "json":
        _emit_json(
            "validate",
            {
                "schema_version": catalog.schema_version,
                "summary": {
                    "task_count": len(validated.tasks),
                    "topological_order": list(validated.topological_order),
                },
            },
        )
        return

    roots = [t.id for t in validated.tasks if not t.dependencies]
    typer.echo(f"OK: {len(validated.tasks)} tasks")
    typer.echo("Roots: " + ", ".join(roots))


@app.command("schedule")
def schedule_cmd(
    path: str = typer.Argument(..., help="Path to a task catalog (.yaml/.yml/.json)"),
    scenario: str = typer.Option("standard", "--scenario", help="Scenario preset name"),
    scenario_file: Optional[str] = typer.Option(
        None, "--scenario-file", help="Optional YAML file to add/override scenario presets"
    ),
    factor: Optional[float] = typer.Option(None, "--factor", help="Override the duration factor"),
    expedite: Optional[list[str]] = typer.Option(None, "--expedite", help="Task id to expedite (repeatable)"),
    remove: Optional[list[str]] = typer.Option(None, "--remove", help="Task id to skip (repeatable)"),
    reference_date: Optional[str] = typer.Option(
        None, "--reference-date", help="Day 0 as YYYY-MM-DD (default: catalog value, else today)"
    ),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
    out: Optional[str] = typer.Option(None, "--out", help="Also write the JSON timeline to this path"),
) -> None:
    """Compute the CPM schedule for a catalog under a scenario."""
    _check_format("schedule", format)
    catalog = _load(path, "schedule", format)
    chosen = _scenario("schedule", format, scenario, scenario_file, factor, expedite, remove)
    timeline = _timeline("schedule", format, catalog, chosen, reference_date)

    if out:
        _write_json(out, timeline_to_dict(timeline))

    if format == "json":
        _emit_json("schedule", {"scenario": chosen.name, "timeline": timeline_to_dict(timeline)})
        return

    _print_timeline(timeline)


@app.command("simulate")
def simulate_cmd(
    path: str = typer.Argument(..., help="Path to a task catalog (.yaml/.yml/.json)"),
    day: int = typer.Option(..., "--day", help="Days elapsed since day 0"),
    scenario: str = typer.Option("standard", "--scenario", help="Scenario preset name"),
    scenario_file: Optional[str] = typer.Option(None, "--scenario-file"),
    factor: Optional[float] = typer.Option(None, "--factor"),
    expedite: Optional[list[str]] = typer.Option(None, "--expedite"),
    remove: Optional[list[str]] = typer.Option(None, "--remove"),
    reference_date: Optional[str] = typer.Option(None, "--reference-date"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Show every task's status on a given day."""
    _check_format("simulate", format)
    catalog = _load(path, "simulate", format)
    chosen = _scenario("simulate", format, scenario, scenario_file, factor, expedite, remove)
    timeline = _timeline("simulate", format, catalog, chosen, reference_date)
    simulated = _simulate("simulate", format, timeline, day)

    if format == "json":
        _emit_json(
            "simulate",
            {
                "scenario": chosen.name,
                "simulation": simulated_to_dict(simulated),
                "summary": asdict(simulated.summary),
            },
        )
        return

    summary = simulated.summary
    typer.echo(
        f"Day {simulated.current_day}: {summary.completion_percentage:.1f}% complete, "
        f"{summary.days_remaining} days remaining"
    )
    typer.echo(
        f"completed={summary.completed}, in_progress={summary.in_progress}, "
        f"pending={summary.pending}, blocked={summary.blocked}"
    )
    for t in simulated.tasks:
        typer.echo(f"- {t.id}: {t.status}")


@app.command("next")
def next_cmd(
    path: str = typer.Argument(..., help="Path to a task catalog (.yaml/.yml/.json)"),
    day: int = typer.Option(..., "--day", help="Days elapsed since day 0"),
    limit: int = typer.Option(DEFAULT_NEXT_LIMIT, "--limit", help="Maximum tasks to list"),
    scenario: str = typer.Option("standard", "--scenario", help="Scenario preset name"),
    scenario_file: Optional[str] = typer.Option(None, "--scenario-file"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """List the most urgent unfinished tasks on a given day."""
    _check_format("next", format)
    if limit < 0:
        _fail(
            "next",
            format,
            [CatalogValidationError(code="E_INVALID_LIMIT", message="--limit must be >= 0", path="limit")],
            exit_code=2,
        )
    catalog = _load(path, "next", format)
    chosen = _scenario("next", format, scenario, scenario_file, None, None, None)
    timeline = _timeline("next", format, catalog, chosen, None)
    simulated = _simulate("next", format, timeline, day)
    ids = next_tasks(simulated, limit)

    if format == "json":
        _emit_json("next", {"day": day, "next_tasks": ids})
        return

    if not ids:
        typer.echo("OK: all tasks completed")
        return
    for tid in ids:
        t = simulated.task(tid)
        marker = " [critical]" if t.is_critical_path else ""
        typer.echo(f"- {tid}: {t.task.name} ({t.status}, {t.priority}){marker}")


@app.command("compare")
def compare_cmd(
    path: str = typer.Argument(..., help="Path to a task catalog (.yaml/.yml/.json)"),
    scenario: str = typer.Option(..., "--scenario", help="Scenario preset to compare"),
    baseline: str = typer.Option("standard", "--baseline", help="Scenario preset used as baseline"),
    scenario_file: Optional[str] = typer.Option(None, "--scenario-file"),
    expedite: Optional[list[str]] = typer.Option(None, "--expedite"),
    remove: Optional[list[str]] = typer.Option(None, "--remove"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Compare a scenario's completion time against a baseline scenario."""
    _check_format("compare", format)
    catalog = _load(path, "compare", format)
    base = _scenario("compare", format, baseline, scenario_file, None, None, None)
    chosen = _scenario("compare", format, scenario, scenario_file, None, expedite, remove)
    result = compare_timelines(
        _timeline("compare", format, catalog, base, None),
        _timeline("compare", format, catalog, chosen, None),
    )

    if format == "json":
        _emit_json("compare", {"baseline": base.name, "scenario": chosen.name, "comparison": asdict(result)})
        return

    typer.echo(f"{base.name}: {result.baseline_completion} days")
    typer.echo(f"{chosen.name}: {result.candidate_completion} days")
    typer.echo(f"Saved: {result.days_saved} days ({result.percent_faster:.1f}% faster)")
    if result.removed_task_ids:
        typer.echo("Skipped: " + ", ".join(result.removed_task_ids))


@app.command("scenarios")
def scenarios(
    scenario_file: Optional[str] = typer.Option(
        None,
        "--scenario-file",
        help="Optional YAML file to add/override scenario presets",
    ),
) -> None:
    """List available scenario presets."""
    presets = _presets("scenarios", "text", scenario_file)
    typer.echo("Scenarios:")
    for name in sorted(presets):
        s = presets[name]
        extra = f" - {s.description}" if s.description else ""
        typer.echo(f"- {name}: x{s.duration_factor:g}{extra}")


def _check_format(command: str, format: str) -> None:
    if format not in FORMATS:
        err = CatalogValidationError(
            code=f"E_{command.upper()}_UNKNOWN_FORMAT",
            message=f"unknown format: {format} (choose one of: text, json)",
            file=None,
            path="format",
        )
        _print_errors([err])
        raise typer.Exit(code=2)


def _load(path: str, command: str, format: str) -> Catalog:
    try:
        return load_catalog(path)
    except CatalogLoadError as e:
        _fail(command, format, [e], exit_code=1)
    except CatalogRejected as e:
        _fail(command, format, list(e.errors), exit_code=2)


def _presets(command: str, format: str, scenario_file: Optional[str]) -> dict[str, Scenario]:
    try:
        return load_and_merge(scenario_file)
    except FileNotFoundError:
        _fail(
            command,
            format,
            [
                CatalogLoadError(
                    code="E_SCENARIO_FILE_NOT_FOUND",
                    message=f"scenario file not found: {scenario_file}",
                    path="scenario_file",
                )
            ],
            exit_code=1,
        )
    except ScenarioConfigError as e:
        _fail(
            command,
            format,
            [CatalogValidationError(code="E_SCENARIO_FILE_INVALID", message=str(e), path="scenario_file")],
            exit_code=2,
        )


def _scenario(
    command: str,
    format: str,
    name: str,
    scenario_file: Optional[str],
    factor: Optional[float],
    expedite: Optional[list[str]],
    remove: Optional[list[str]],
) -> Scenario:
    presets = _presets(command, format, scenario_file)
    if name not in presets:
        _fail(
            command,
            format,
            [
                CatalogValidationError(
                    code="E_UNKNOWN_SCENARIO",
                    message=f"unknown scenario: {name} (choose one of: {', '.join(sorted(presets))})",
                    path="scenario",
                )
            ],
            exit_code=2,
        )
    return presets[name].with_overrides(
        duration_factor=factor,
        expedited_ids=expedite or (),
        removed_ids=remove or (),
    )


def _timeline(
    command: str,
    format: str,
    catalog: Catalog,
    scenario: Scenario,
    reference_date: Optional[str],
) -> Timeline:
    known = {t.id for t in catalog.tasks}
    for tid in sorted((scenario.expedited_ids | scenario.removed_ids) - known):
        typer.echo(f"WARN: scenario {scenario.name} references unknown task id: {tid}", err=True)

    try:
        tasks: list[Task] = transform(catalog.tasks, scenario)
    except TimelineError as e:
        _fail(command, format, [e], exit_code=2)

    validated, errors = validate_tasks(tasks, file=catalog.file)
    if errors or validated is None:
        _fail(command, format, errors, exit_code=2)

    return schedule(validated, reference_date=_reference_date(command, format, catalog, reference_date))


def _reference_date(command: str, format: str, catalog: Catalog, value: Optional[str]) -> date:
    if value is None:
        return catalog.reference_date or date.today()
    try:
        return date.fromisoformat(value)
    except ValueError:
        _fail(
            command,
            format,
            [
                CatalogValidationError(
                    code="E_INVALID_REFERENCE_DATE",
                    message=f"--reference-date must be YYYY-MM-DD, got {value!r}",
                    path="reference_date",
                )
            ],
            exit_code=2,
        )


def _simulate(command: str, format: str, timeline: Timeline, day: int) -> SimulatedTimeline:
    try:
        return simulate(timeline, day)
    except TimelineError as e:
        _fail(command, format, [e], exit_code=2)


def _print_timeline(timeline: Timeline) -> None:
    when = f" (completes {timeline.completion_date.isoformat()})" if timeline.completion_date else ""
    typer.echo(f"Fastest completion: {timeline.fastest_completion} days{when}")
    typer.echo("Critical path: " + " -> ".join(timeline.critical_path))
    if timeline.parallel_groups:
        typer.echo("Parallel groups: " + " | ".join(", ".join(g) for g in timeline.parallel_groups))
    for t in timeline.tasks:
        marker = " *" if t.is_critical_path else ""
        typer.echo(f"- {t.id}: day {t.start_day}-{t.end_day} (slack {t.slack}){marker}")


def _to_item(e: TimelineError) -> dict[str, Any]:
    source = "load" if isinstance(e, CatalogLoadError) else "validate"
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "path": e.path,
        "severity": "error",
        "source": source,
    }


def _emit_json(command: str, body: dict[str, Any], *, ok: bool = True, errors: list[TimelineError] | None = None) -> None:
    errors = errors or []
    payload = {
        "tool": "timeline",
        "command": command,
        "ok": ok,
        "error_count": len(errors),
        "errors": [_to_item(e) for e in errors],
        **body,
    }
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))


def _fail(command: str, format: str, errors: list[TimelineError], *, exit_code: int) -> NoReturn:
    if format == "json":
        _emit_json(command, {}, ok=False, errors=errors)
    else:
        _print_errors(errors)
    raise typer.Exit(code=exit_code)


def _write_json(path: str, payload: dict[str, Any]) -> None:
    p = Path(path)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def _print_errors(errors: list[TimelineError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="timeline")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
