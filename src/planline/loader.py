"""Plan loading: YAML parsing, schema validation and model conversion."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from .engine.core import PlanSnapshot
from .engine.repository import InMemoryRepository
from .exceptions import ParseError, ValidationError
from .logger import get_logger
from .models import (
    CalendarEvent,
    DailyRecurrence,
    Holiday,
    MonthlyByDate,
    MonthlyByWeekday,
    MonthlyRecurrence,
    Phase,
    Project,
    RecurrencePattern,
    RecurringConfig,
    TimeSlot,
    Weekday,
    WeeklyRecurrence,
    WeeklyWorkHours,
)
from .schemas import (
    ByDateSchema,
    DailySchema,
    MonthlySchema,
    PhaseSchema,
    PlanSchema,
    TimeSlotSchema,
    WeeklySchema,
)
from .unified_config import CONFIG_FILE_NAME, UnifiedConfig, load_unified_config

logger = get_logger()


@dataclass
class Plan:
    """A fully loaded plan and the configuration it was loaded with."""

    projects: list[Project]
    phases: list[Phase]
    holidays: list[Holiday]
    events: list[CalendarEvent]
    weekly_hours: WeeklyWorkHours
    config: UnifiedConfig

    def snapshot(self) -> PlanSnapshot:
        return PlanSnapshot(
            projects=list(self.projects),
            phases=list(self.phases),
            holidays=list(self.holidays),
            events=list(self.events),
            weekly_hours=self.weekly_hours,
        )

    def project(self, project_id: str) -> Project | None:
        return next((p for p in self.projects if p.id == project_id), None)

    def phase(self, phase_id: str) -> Phase | None:
        return next((p for p in self.phases if p.id == phase_id), None)

    async def to_repository(self) -> InMemoryRepository:
        """Load the plan into a fresh in-memory repository."""
        repository = InMemoryRepository(self.weekly_hours)
        for project in self.projects:
            await repository.create_project(project)
        for phase in self.phases:
            await repository.create_phase(phase)
        for holiday in self.holidays:
            await repository.create_holiday(holiday)
        for event in self.events:
            await repository.create_event(event)
        repository.write_log.clear()
        return repository


def discover_config(plan_path: Path, config_path: Path | None = None) -> UnifiedConfig | None:
    """Discover unified config from various locations.

    Search order:
    1. Explicit config_path argument (e.g. the CLI --config option)
    2. Plan file directory / planline_config.yaml
    3. Current directory / planline_config.yaml
    """
    if config_path is not None:
        return load_unified_config(config_path)

    dir_config = Path(plan_path).parent / CONFIG_FILE_NAME
    if dir_config.exists():
        return load_unified_config(dir_config)

    cwd_config = Path(CONFIG_FILE_NAME)
    if cwd_config.exists():
        return load_unified_config(cwd_config)

    return None


def weekly_hours_from_schema(slots: dict[str, list[TimeSlotSchema]]) -> WeeklyWorkHours:
    return WeeklyWorkHours(
        slots={
            Weekday.parse(day): [TimeSlot(slot.start, slot.end) for slot in day_slots]
            for day, day_slots in slots.items()
        }
    )


def _recurrence_from_schema(schema: PhaseSchema) -> RecurringConfig | None:
    recurring = schema.recurring
    if recurring is None:
        return None
    pattern: RecurrencePattern
    if isinstance(recurring, DailySchema):
        pattern = DailyRecurrence(interval_days=recurring.interval_days)
    elif isinstance(recurring, WeeklySchema):
        pattern = WeeklyRecurrence(
            day_of_week=recurring.day_of_week, interval_weeks=recurring.interval_weeks
        )
    elif isinstance(recurring, MonthlySchema):
        monthly = recurring.pattern
        if isinstance(monthly, ByDateSchema):
            monthly_pattern: MonthlyByDate | MonthlyByWeekday = MonthlyByDate(monthly.day_of_month)
        else:
            monthly_pattern = MonthlyByWeekday(monthly.week_of_month, monthly.day_of_week)
        pattern = MonthlyRecurrence(monthly_pattern, interval_months=recurring.interval_months)
    else:
        raise ValidationError(f"Unknown recurrence kind: {recurring!r}")
    return RecurringConfig(pattern=pattern, rrule=schema.rrule)


def parse_plan(data: dict[str, Any], config: UnifiedConfig | None = None) -> Plan:
    """Convert raw YAML data into a Plan."""
    config = config or UnifiedConfig()
    try:
        schema = PlanSchema.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid plan structure: {e}") from e

    weekly_slots = schema.settings.weekly_work_hours
    if weekly_slots is None:
        weekly_slots = config.default_weekly_hours
    weekly_hours = weekly_hours_from_schema(weekly_slots)

    horizon = config.engine.recurrence.continuous_horizon_days
    projects = [
        Project(
            id=project_id,
            name=p.name or project_id,
            start_date=p.start,
            end_date=p.end or p.start + timedelta(days=horizon),
            estimated_hours=p.estimated_hours,
            group_id=p.group,
            color=p.color,
            continuous=p.continuous,
        )
        for project_id, p in schema.projects.items()
    ]
    phases = [
        Phase(
            id=phase_id,
            project_id=p.project,
            start_date=p.start,
            end_date=p.end,
            time_allocation_hours=p.hours,
            name=p.name or phase_id,
            order=p.order,
            recurring=_recurrence_from_schema(p),
        )
        for phase_id, p in schema.phases.items()
    ]
    holidays = [
        Holiday(
            id=holiday_id,
            start_date=h.start,
            end_date=h.end or h.start,
            title=h.title,
            notes=h.notes,
        )
        for holiday_id, h in schema.holidays.items()
    ]
    events = [
        CalendarEvent(
            id=event_id,
            start=e.start,
            end=e.end,
            project_id=e.project,
            completed=e.completed,
            title=e.title,
        )
        for event_id, e in schema.events.items()
    ]
    logger.checks(
        f"Loaded {len(projects)} projects, {len(phases)} phases, "
        f"{len(holidays)} holidays, {len(events)} events"
    )
    return Plan(projects, phases, holidays, events, weekly_hours, config)


def load_plan(
    path: Path | str,
    config_path: Path | None = None,
    *,
    config: UnifiedConfig | None = None,
) -> Plan:
    """Load a plan YAML file.

    Args:
        path: Path to the plan YAML file
        config_path: Optional explicit path to config file
        config: Optional explicit unified config (overrides discovery)

    Returns:
        Loaded Plan

    Raises:
        ParseError: If the file is missing or is not a YAML mapping
        ValidationError: If the plan does not match the schema
    """
    path = Path(path)
    if config is None:
        config = discover_config(path, config_path)

    if not path.exists():
        raise ParseError(f"File not found: {path}")
    try:
        with path.open(encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ParseError(f"Failed to parse YAML: {e}") from e

    if not isinstance(data, dict):
        raise ParseError("YAML must contain a dictionary at the root level")

    return parse_plan(data, config)  # type: ignore[arg-type]
