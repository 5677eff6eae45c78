"""Command-line interface for Planline."""

from __future__ import annotations

import asyncio
import csv
import sys
from dataclasses import dataclass
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Annotated, Any

import typer
import yaml
from pydantic import ValidationError as PydanticValidationError

from .engine import (
    DayEstimate,
    EstimateSource,
    PlanningService,
    aggregate_by_date,
    describe_recurrence,
    to_rrule,
    total_hours,
)
from .exceptions import PlanlineError
from .loader import Plan, load_plan
from .logger import setup_logger
from .models import DateRange

app = typer.Typer(
    name="planline",
    help="Plan project hour budgets against working days, holidays and recurring phases",
    add_completion=False,
)


class OutputFormat(str, Enum):
    TABLE = "table"
    CSV = "csv"
    YAML = "yaml"


@dataclass
class CliState:
    """Global options shared by every command."""

    config_path: Path | None = None


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            help="Verbosity level: 0=silent (default), 1=show changes, 2=show all checks, 3=debug",
            min=0,
            max=3,
        ),
    ] = 0,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to unified config file (default: planline_config.yaml)",
        ),
    ] = None,
) -> None:
    """Global options for planline commands."""
    setup_logger(verbose)
    ctx.obj = CliState(config_path=config)


def _fail(message: str) -> typer.Exit:
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(1)


def _parse_date_option(date_str: str | None, option_name: str) -> date | None:
    """Parse a YYYY-MM-DD date from a CLI option."""
    if date_str is None:
        return None
    try:
        return date.fromisoformat(date_str)
    except ValueError:
        raise _fail(
            f"Invalid date format '{date_str}' for {option_name}. Use YYYY-MM-DD format."
        ) from None


def _load(ctx: typer.Context, file: Path) -> Plan:
    state: CliState = ctx.obj or CliState()
    try:
        return load_plan(file, state.config_path)
    except (PlanlineError, FileNotFoundError, ValueError, PydanticValidationError) as e:
        raise _fail(str(e)) from None


def _service(plan: Plan, today: date | None = None) -> PlanningService:
    repository = asyncio.run(plan.to_repository())
    return PlanningService(repository, plan.config.engine, today=today)


def _run(coro: Any) -> Any:
    try:
        return asyncio.run(coro)
    except PlanlineError as e:
        raise _fail(str(e)) from None


def _write_estimates(estimates: list[DayEstimate], output_format: OutputFormat) -> None:
    if output_format == OutputFormat.CSV:
        writer = csv.writer(sys.stdout)
        writer.writerow(["date", "project", "hours", "source", "phase", "planned", "completed"])
        for e in estimates:
            writer.writerow(
                [
                    e.date.isoformat(),
                    e.project_id,
                    f"{e.hours:g}",
                    e.source.value,
                    e.phase_id or "",
                    e.is_planned_event,
                    e.is_completed_event,
                ]
            )
        return

    if output_format == OutputFormat.YAML:
        rows = [
            {
                "date": e.date.isoformat(),
                "hours": e.hours,
                "source": e.source.value,
                **({"phase": e.phase_id} if e.phase_id else {}),
                **({"completed": True} if e.is_completed_event else {}),
            }
            for e in estimates
        ]
        typer.echo(yaml.dump(rows, default_flow_style=False, sort_keys=False).rstrip())
        return

    for e in estimates:
        label = e.source.value if not e.phase_id else f"{e.source.value} ({e.phase_id})"
        marker = " [done]" if e.is_completed_event else ""
        typer.echo(f"{e.date.isoformat()}  {e.hours:>6.2f}h  {label}{marker}")
    by_date = aggregate_by_date(estimates)
    typer.echo("-" * 40)
    typer.echo(f"{len(by_date)} days, {total_hours(estimates):g}h total")
    for source in EstimateSource:
        hours = total_hours(estimates, source=source)
        if hours:
            typer.echo(f"  {source.value}: {hours:g}h")


@app.command()
def estimates(  # noqa: PLR0913 - CLI command needs multiple options
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="Path to the plan YAML file")],
    *,
    project: Annotated[str, typer.Option("--project", "-p", help="Project ID")],
    start: Annotated[str | None, typer.Option("--start", help="First date (YYYY-MM-DD)")] = None,
    end: Annotated[str | None, typer.Option("--end", help="Last date (YYYY-MM-DD)")] = None,
    today: Annotated[
        str | None,
        typer.Option("--today", help="Spread the remaining budget from this date (YYYY-MM-DD)"),
    ] = None,
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.TABLE,
) -> None:
    """Show per-day hour estimates for a project."""
    start_date = _parse_date_option(start, "--start")
    end_date = _parse_date_option(end, "--end")
    today_date = _parse_date_option(today, "--today")

    plan = _load(ctx, file)
    target = plan.project(project)
    if target is None:
        raise _fail(f"Unknown project '{project}'")
    window = target.window(plan.config.engine.recurrence.continuous_horizon_days)
    try:
        date_range = DateRange(start_date or window.start, end_date or window.end)
    except PlanlineError as e:
        raise _fail(str(e)) from None

    service = _service(plan, today_date)
    result = _run(service.day_estimates(project, date_range))
    _write_estimates(result, output_format)


def _parse_change(change: str) -> tuple[str, float]:
    phase_id, sep, hours = change.partition("=")
    try:
        if not sep or not phase_id:
            raise ValueError(change)
        return phase_id.strip(), float(hours)
    except ValueError:
        raise _fail(f"Invalid --change '{change}'. Use PHASE=HOURS.") from None


@app.command()
def budget(
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="Path to the plan YAML file")],
    *,
    project: Annotated[str, typer.Option("--project", "-p", help="Project ID")],
    change: Annotated[
        str | None,
        typer.Option("--change", help="What-if: set a phase's hours (PHASE=HOURS)"),
    ] = None,
) -> None:
    """Check phase allocations against a project's budget."""
    plan = _load(ctx, file)
    service = _service(plan)
    if change:
        phase_id, hours = _parse_change(change)
        result = _run(service.simulate_budget(project, phase_id, hours))
        typer.echo(f"What-if: {phase_id} = {hours:g}h")
    else:
        result = _run(service.budget(project))

    typer.echo(f"Budget:      {result.project_budget:g}h")
    typer.echo(f"Allocated:   {result.total_allocated:g}h ({result.utilization_percent:.1f}%)")
    typer.echo(f"Remaining:   {result.remaining:g}h")
    if result.recurring_hours_per_occurrence:
        typer.echo(f"Recurring:   {result.recurring_hours_per_occurrence:g}h per occurrence")
    for warning in result.warnings:
        typer.echo(f"Warning: {warning}")
    if not result.is_valid:
        typer.echo(f"OVER BUDGET by {result.overage_hours:g}h")
        for reason in result.reasons:
            typer.echo(f"  - {reason}", err=True)
        raise typer.Exit(1)


@app.command()
def layout(
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="Path to the plan YAML file")],
    *,
    group: Annotated[str | None, typer.Option("--group", "-g", help="Only this group")] = None,
) -> None:
    """Assign projects to non-overlapping timeline rows."""
    plan = _load(ctx, file)
    service = _service(plan)
    layouts = _run(service.layout(group))
    if not layouts:
        typer.echo("No projects")
        return
    for group_id, row_layout in layouts.items():
        typer.echo(f"{group_id} ({row_layout.row_count} rows)")
        for row in range(row_layout.row_count):
            typer.echo(f"  row {row}: {', '.join(row_layout.projects_in_row(row))}")


@app.command()
def recurrence(
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="Path to the plan YAML file")],
    *,
    phase: Annotated[str, typer.Option("--phase", help="Recurring phase ID")],
    show_rrule: Annotated[
        bool, typer.Option("--rrule", help="Also print the equivalent recurrence rule")
    ] = False,
) -> None:
    """List the occurrences of a recurring phase."""
    plan = _load(ctx, file)
    template = plan.phase(phase)
    if template is None:
        raise _fail(f"Unknown phase '{phase}'")
    if template.recurring is None:
        raise _fail(f"Phase '{phase}' is not recurring")

    typer.echo(describe_recurrence(template.recurring.pattern))
    if show_rrule:
        rule = template.recurring.rrule or to_rrule(template.recurring.pattern, template.start_date)
        typer.echo(rule)
    service = _service(plan)
    for occurrence in _run(service.occurrences(phase)):
        typer.echo(f"{occurrence.index + 1:>4}. {occurrence.range}")


@app.command()
def check(
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="Path to the plan YAML file")],
) -> None:
    """Validate holidays, phase windows, recurring phases and budgets."""
    plan = _load(ctx, file)
    service = _service(plan)
    violations = _run(service.check_plan())
    if not violations:
        typer.echo("Plan is valid")
        return
    for violation in violations:
        typer.echo(f"  - {violation}")
    typer.echo(f"{len(violations)} violation(s) found", err=True)
    raise typer.Exit(1)


def main() -> int:
    """Main entry point."""
    # Typer handles sys.exit() internally
    app()
    return 0


if __name__ == "__main__":
    main()
