"""Per-day hour estimates for a project.

Each date gets hours from exactly one source, in priority order:
1. Calendar events of the project (the overlapping duration within the day)
2. A phase window or recurring occurrence, whose hours are spread evenly over
   its working days
3. The project-level auto-estimate: budget not allocated to phases, spread
   evenly over the remaining uncovered working days

Spreading uses decimal arithmetic rounded down to a fixed precision, with the
remainder put on the last working day so each window's sum is exact.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date, datetime, time, timedelta
from decimal import ROUND_DOWN, Decimal

from planline.logger import get_logger
from planline.models import (
    CalendarEvent,
    DateRange,
    Holiday,
    Phase,
    Project,
    WeeklyWorkHours,
)

from .calendar import is_working_day, iter_dates
from .config import EngineConfig
from .core import DayEstimate, EstimateSource
from .overrides import WeekOverrideStore
from .recurrence import expand_recurrence

logger = get_logger()

_SOURCE_ORDER = {
    EstimateSource.EVENT: 0,
    EstimateSource.MILESTONE_ALLOCATION: 1,
    EstimateSource.PROJECT_AUTO_ESTIMATE: 2,
}


def _event_hours_by_day(event: CalendarEvent) -> dict[date, float]:
    """Split an event into the hours it overlaps on each calendar day."""
    hours: dict[date, float] = {}
    if event.end <= event.start:
        return hours
    day = event.start.date()
    while day <= event.end.date():
        day_start = datetime.combine(day, time(), tzinfo=event.start.tzinfo)
        day_end = day_start + timedelta(days=1)
        overlap = min(event.end, day_end) - max(event.start, day_start)
        if overlap.total_seconds() > 0:
            hours[day] = overlap.total_seconds() / 3600
        day += timedelta(days=1)
    return hours


def _spread(total_hours: float, days: Sequence[date], precision: int) -> list[tuple[date, float]]:
    """Spread hours evenly over days; the last day absorbs the rounding remainder."""
    if not days:
        return []
    quantum = Decimal(1).scaleb(-precision)
    total = Decimal(str(total_hours)).quantize(quantum)
    per_day = (total / len(days)).quantize(quantum, rounding=ROUND_DOWN)
    last = total - per_day * (len(days) - 1)
    spread = [(day, float(per_day)) for day in days[:-1]]
    spread.append((days[-1], float(last)))
    return spread


class _Allocator:
    """Tracks which dates are claimed while estimates are built."""

    def __init__(
        self,
        project: Project,
        weekly_hours: WeeklyWorkHours,
        holidays: list[Holiday],
        precision: int,
    ) -> None:
        self.project = project
        self.weekly_hours = weekly_hours
        self.holidays = holidays
        self.precision = precision
        self.covered: set[date] = set()
        self.estimates: list[DayEstimate] = []

    def working_days(self, window: DateRange, since: date | None = None) -> list[date]:
        return [
            day
            for day in iter_dates(window.start, window.end)
            if day not in self.covered
            and (since is None or day >= since)
            and is_working_day(day, self.weekly_hours, self.holidays)
        ]

    def allocate(
        self,
        window: DateRange,
        hours: float,
        source: EstimateSource,
        phase_id: str | None = None,
        since: date | None = None,
    ) -> None:
        days = self.working_days(window, since)
        if hours > 0 and not days:
            logger.checks(
                f"  {self.project.id}: no working days in {window} for {hours:g}h ({source.value})"
            )
        for day, day_hours in _spread(hours, days, self.precision):
            if day_hours > 0:
                self.estimates.append(
                    DayEstimate(day, self.project.id, day_hours, source, phase_id=phase_id)
                )

    def claim(self, window: DateRange) -> None:
        self.covered.update(window)


def compute_day_estimates(  # noqa: PLR0913 - mirrors the rendering contract
    project: Project,
    phases: Iterable[Phase],
    weekly_hours: WeeklyWorkHours,
    holidays: Iterable[Holiday],
    events: Iterable[CalendarEvent],
    date_range: DateRange,
    today: date | None = None,
    config: EngineConfig | None = None,
    overrides: WeekOverrideStore | None = None,
) -> list[DayEstimate]:
    """Compute one estimate per (date, source) for a project over a date range.

    Args:
        project: Project whose budget is distributed
        phases: Phases of the project (other projects' phases are ignored)
        weekly_hours: Working time slots per weekday
        holidays: User holidays (never worked)
        events: Calendar events; only those linked to the project count
        date_range: Dates to report; the whole project is still computed
        today: Optional reference date; auto-estimates are spread from it onwards
        config: Engine configuration
        overrides: Optional week-scoped overrides of recurring occurrence hours

    Returns:
        Estimates within date_range ordered by date, then source, then phase id
    """
    config = config or EngineConfig()
    est_config = config.estimates
    window = project.window(config.recurrence.continuous_horizon_days)
    project_phases = sorted(
        (p for p in phases if p.project_id == project.id),
        key=lambda p: (p.start_date, p.order, p.id),
    )
    allocator = _Allocator(project, weekly_hours, list(holidays), est_config.hour_precision)

    # Events take each date they touch
    event_hours: dict[date, float] = defaultdict(float)
    event_completed: dict[date, bool] = defaultdict(bool)
    for event in sorted(events, key=lambda e: (e.start, e.id)):
        if event.project_id != project.id:
            continue
        for day, hours in _event_hours_by_day(event).items():
            event_hours[day] += hours
            event_completed[day] = event_completed[day] or event.completed
    quantum = Decimal(1).scaleb(-est_config.hour_precision)
    for day in sorted(event_hours):
        allocator.estimates.append(
            DayEstimate(
                date=day,
                project_id=project.id,
                hours=float(Decimal(str(event_hours[day])).quantize(quantum)),
                source=EstimateSource.EVENT,
                is_planned_event=True,
                is_completed_event=event_completed[day],
            )
        )
    allocator.covered.update(event_hours)

    # Phase windows and recurring occurrences
    phase_days: set[date] = set()
    for phase in project_phases:
        if phase.is_recurring:
            continue
        phase_window = phase.range.intersect(window)
        if phase_window is None:
            continue
        allocator.allocate(
            phase_window, phase.time_allocation_hours, EstimateSource.MILESTONE_ALLOCATION, phase.id
        )
        allocator.claim(phase_window)
        phase_days.update(phase_window)

    for template in (p for p in project_phases if p.is_recurring):
        occurrences = expand_recurrence(
            template, project.start_date, window.end, config.recurrence
        )
        for occurrence in occurrences:
            occurrence_window = occurrence.range.intersect(window)
            if occurrence_window is None:
                continue
            hours = template.time_allocation_hours
            if overrides is not None:
                override = overrides.get(template.id, occurrence.start_date)
                if override is not None:
                    hours = override
            allocator.allocate(
                occurrence_window, hours, EstimateSource.MILESTONE_ALLOCATION, template.id
            )
            allocator.claim(occurrence_window)
            phase_days.update(occurrence_window)

    # Remaining project budget over uncovered working days
    if not project.continuous:
        allocated = sum(p.time_allocation_hours for p in project_phases if not p.is_recurring)
        remaining = project.estimated_hours - allocated
        if est_config.events_consume_budget:
            remaining -= sum(
                hours
                for day, hours in event_hours.items()
                if day not in phase_days and window.contains(day)
            )
        since = today if (today is not None and est_config.skip_past_days) else None
        if remaining > 0:
            allocator.allocate(window, remaining, EstimateSource.PROJECT_AUTO_ESTIMATE, since=since)

    result = [e for e in allocator.estimates if date_range.contains(e.date)]
    result.sort(key=lambda e: (e.date, _SOURCE_ORDER[e.source], e.phase_id or ""))
    logger.checks(f"Estimated {project.id}: {len(result)} day entries in {date_range}")
    return result


def aggregate_by_date(estimates: Iterable[DayEstimate]) -> dict[date, float]:
    """Sum estimate hours per date, ordered by date."""
    totals: dict[date, float] = defaultdict(float)
    for estimate in estimates:
        totals[estimate.date] += estimate.hours
    return {day: round(totals[day], 6) for day in sorted(totals)}


def total_hours(
    estimates: Iterable[DayEstimate],
    source: EstimateSource | None = None,
    phase_id: str | None = None,
) -> float:
    """Total hours, optionally restricted to one source and/or phase."""
    return round(
        sum(
            e.hours
            for e in estimates
            if (source is None or e.source == source)
            and (phase_id is None or e.phase_id == phase_id)
        ),
        6,
    )
