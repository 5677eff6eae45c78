"""Expansion of recurring phase templates into concrete occurrences.

A recurring phase is stored once, as a template. Its occurrences are
computed on demand: starting at the template's first occurrence, the
pattern is stepped forward until an occurrence would start after the upper
bound. Steps before the lower bound are dropped, so a later lower bound
never shifts the phase of an interval. Each occurrence keeps the
template's duration.

Patterns:
- daily: every N days
- weekly: every N weeks, snapped to a weekday
- monthly by date: every N months on a day of month (clamped to short months)
- monthly by weekday: every N months on the Nth weekday (5 = last)

A template may also carry a pre-expanded RFC 5545 rule, which is replayed
verbatim instead of the pattern.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterator
from datetime import date, datetime, time, timedelta

from dateutil.relativedelta import relativedelta
from dateutil.rrule import DAILY, MONTHLY, WEEKLY, rrule, rrulestr, weekday

from planline.exceptions import InvalidInputError
from planline.logger import get_logger
from planline.models import (
    DailyRecurrence,
    MonthlyByDate,
    MonthlyByWeekday,
    MonthlyRecurrence,
    Phase,
    Project,
    RecurrencePattern,
    RecurringConfig,
    WeeklyRecurrence,
)

from .config import RecurrenceConfig
from .core import Occurrence, ValidationResult

logger = get_logger()

LAST_WEEK_OF_MONTH = 5  # week_of_month value meaning "last <weekday> of the month"
MAX_DAY_OF_MONTH = 31
SHORTEST_MONTH_DAYS = 28
ORDINALS = ["1st", "2nd", "3rd", "4th", "last"]

# (reference date used for bound checks, occurrence start or None when the step is skipped)
_Step = tuple[date, date | None]


def upper_bound_for(project: Project, config: RecurrenceConfig | None = None) -> date:
    """Upper bound of expansion for a project: its end, or a synthetic horizon if continuous."""
    config = config or RecurrenceConfig()
    return project.window(config.continuous_horizon_days).end


def _nth_weekday(year: int, month: int, day_of_week: int, week_of_month: int) -> date | None:
    """Find the Nth weekday of a month (5 = last). None if the month has no such day."""
    days_in_month = calendar.monthrange(year, month)[1]
    if week_of_month == LAST_WEEK_OF_MONTH:
        last = date(year, month, days_in_month)
        return last - timedelta(days=(last.weekday() - day_of_week) % 7)
    first = date(year, month, 1)
    first_match = first + timedelta(days=(day_of_week - first.weekday()) % 7)
    candidate = first_match + timedelta(weeks=week_of_month - 1)
    if candidate.month != month:
        return None
    return candidate


def _daily_steps(pattern: DailyRecurrence, anchor: date) -> Iterator[_Step]:
    current = anchor
    while True:
        yield (current, current)
        current += timedelta(days=pattern.interval_days)


def _weekly_steps(pattern: WeeklyRecurrence, anchor: date) -> Iterator[_Step]:
    # Snap forward to the configured weekday, then step whole week-intervals
    current = anchor + timedelta(days=(int(pattern.day_of_week) - anchor.weekday()) % 7)
    while True:
        yield (current, current)
        current += timedelta(weeks=pattern.interval_weeks)


def _monthly_steps(pattern: MonthlyRecurrence, anchor: date) -> Iterator[_Step]:
    first_month = anchor.replace(day=1)
    step = 0
    while True:
        month_start = first_month + relativedelta(months=step * pattern.interval_months)
        monthly = pattern.pattern
        candidate: date | None
        if isinstance(monthly, MonthlyByDate):
            days_in_month = calendar.monthrange(month_start.year, month_start.month)[1]
            candidate = month_start.replace(day=min(monthly.day_of_month, days_in_month))
        elif isinstance(monthly, MonthlyByWeekday):
            candidate = _nth_weekday(
                month_start.year,
                month_start.month,
                int(monthly.day_of_week),
                monthly.week_of_month,
            )
        else:
            raise InvalidInputError(f"Unknown monthly pattern: {monthly!r}")

        if candidate is not None and candidate < anchor:
            candidate = None  # First month's date already passed
        yield (candidate or month_start, candidate)
        step += 1


def _pattern_steps(pattern: RecurrencePattern, anchor: date) -> Iterator[_Step]:
    if isinstance(pattern, DailyRecurrence):
        return _daily_steps(pattern, anchor)
    if isinstance(pattern, WeeklyRecurrence):
        return _weekly_steps(pattern, anchor)
    if isinstance(pattern, MonthlyRecurrence):
        return _monthly_steps(pattern, anchor)
    raise InvalidInputError(f"Unknown recurrence pattern: {pattern!r}")


def _rrule_steps(rule_text: str, dtstart: date, lower: date) -> Iterator[_Step]:
    try:
        rule = rrulestr(rule_text, dtstart=datetime.combine(dtstart, time()))
    except (ValueError, TypeError) as e:
        logger.warning(f"Ignoring unparseable recurrence rule '{rule_text}': {e}")
        return
    for occurrence in rule.xafter(datetime.combine(lower, time()), inc=True):
        day = occurrence.date()
        yield (day, day)


def iter_occurrences(
    template: Phase,
    lower_bound: date,
    upper_bound: date,
    max_occurrences: int | None = None,
) -> Iterator[Occurrence]:
    """Lazily yield occurrences of a recurring template within [lower_bound, upper_bound].

    An occurrence is emitted when its start lies in the bounds; its end may
    extend past upper_bound. Steps whose date does not exist (e.g. a 5th
    Monday from a replayed rule) are skipped, never substituted.
    """
    if template.recurring is None:
        raise InvalidInputError(f"Phase '{template.id}' is not a recurring template")
    if upper_bound < lower_bound:
        return

    duration = template.end_date - template.start_date
    earliest = max(template.start_date, lower_bound)
    config = template.recurring
    if config.rrule:
        steps = _rrule_steps(config.rrule, template.start_date, earliest)
    else:
        problems = validate_recurring_config(config, 1.0).reasons
        if problems:
            logger.warning(f"Phase '{template.id}': not expanding ({'; '.join(problems)})")
            return
        steps = _pattern_steps(config.pattern, template.start_date)

    index = 0
    previous_start: date | None = None
    for reference, start in steps:
        if reference > upper_bound:
            break
        if start is not None and start < earliest:
            continue
        if start is None or start > upper_bound:
            logger.checks(f"  Phase '{template.id}': skipping recurrence step at {reference}")
            continue
        if previous_start is not None and start <= previous_start:
            continue
        if max_occurrences is not None and index >= max_occurrences:
            logger.warning(
                f"Phase '{template.id}': stopped after {max_occurrences} occurrences "
                f"(upper bound {upper_bound})"
            )
            break
        yield Occurrence(index=index, start_date=start, end_date=start + duration)
        previous_start = start
        index += 1


class RecurrenceSequence:
    """Restartable, finite sequence of occurrences for a recurring template.

    Every iteration starts over from the first occurrence, so the sequence
    can be consumed any number of times with identical results.
    """

    def __init__(
        self,
        template: Phase,
        lower_bound: date,
        upper_bound: date | None = None,
        config: RecurrenceConfig | None = None,
    ) -> None:
        """Initialize the sequence.

        Args:
            template: Recurring phase template
            lower_bound: No occurrence starts before this date
            upper_bound: No occurrence starts after this date; None means open-ended,
                capped at lower_bound + continuous_horizon_days
            config: Optional recurrence configuration
        """
        self.template = template
        self.config = config or RecurrenceConfig()
        self.lower_bound = lower_bound
        self.upper_bound = (
            upper_bound
            if upper_bound is not None
            else lower_bound + timedelta(days=self.config.continuous_horizon_days)
        )

    def __iter__(self) -> Iterator[Occurrence]:
        return iter_occurrences(
            self.template,
            self.lower_bound,
            self.upper_bound,
            max_occurrences=self.config.max_occurrences,
        )

    def occurrence_on(self, day: date) -> Occurrence | None:
        """Return the occurrence whose window contains day, if any."""
        for occurrence in self:
            if occurrence.start_date > day:
                return None
            if occurrence.start_date <= day <= occurrence.end_date:
                return occurrence
        return None


def expand_recurrence(
    template: Phase,
    lower_bound: date,
    upper_bound: date | None = None,
    config: RecurrenceConfig | None = None,
) -> list[Occurrence]:
    """Expand a recurring template into its occurrences between the bounds."""
    return list(RecurrenceSequence(template, lower_bound, upper_bound, config))


def expand_for_project(
    template: Phase, project: Project, config: RecurrenceConfig | None = None
) -> list[Occurrence]:
    """Expand a template within its project's window (horizon-capped when continuous)."""
    config = config or RecurrenceConfig()
    return expand_recurrence(template, project.start_date, upper_bound_for(project, config), config)


def _rrule_weekday(day_of_week: int, nth: int | None = None) -> weekday:
    base = weekday(day_of_week)
    return base(nth) if nth is not None else base


def to_rrule(pattern: RecurrencePattern, start: date, until: date | None = None) -> str:
    """Build an RFC 5545 rule string equivalent to a recurrence pattern."""
    dtstart = datetime.combine(start, time())
    until_dt = datetime.combine(until, time()) if until else None
    if isinstance(pattern, DailyRecurrence):
        rule = rrule(DAILY, interval=pattern.interval_days, dtstart=dtstart, until=until_dt)
    elif isinstance(pattern, WeeklyRecurrence):
        # Start on the first matching weekday so intervals count from that week
        first = start + timedelta(days=(int(pattern.day_of_week) - start.weekday()) % 7)
        rule = rrule(
            WEEKLY,
            interval=pattern.interval_weeks,
            byweekday=_rrule_weekday(int(pattern.day_of_week)),
            dtstart=datetime.combine(first, time()),
            until=until_dt,
        )
    elif isinstance(pattern, MonthlyRecurrence):
        monthly = pattern.pattern
        if isinstance(monthly, MonthlyByDate):
            if monthly.day_of_month > SHORTEST_MONTH_DAYS:
                # Last of the candidate days that exists in the month clamps short months
                rule = rrule(
                    MONTHLY,
                    interval=pattern.interval_months,
                    bymonthday=tuple(range(SHORTEST_MONTH_DAYS, monthly.day_of_month + 1)),
                    bysetpos=-1,
                    dtstart=dtstart,
                    until=until_dt,
                )
            else:
                rule = rrule(
                    MONTHLY,
                    interval=pattern.interval_months,
                    bymonthday=monthly.day_of_month,
                    dtstart=dtstart,
                    until=until_dt,
                )
        else:
            nth = -1 if monthly.week_of_month == LAST_WEEK_OF_MONTH else monthly.week_of_month
            rule = rrule(
                MONTHLY,
                interval=pattern.interval_months,
                byweekday=_rrule_weekday(int(monthly.day_of_week), nth),
                dtstart=dtstart,
                until=until_dt,
            )
    else:
        raise InvalidInputError(f"Unknown recurrence pattern: {pattern!r}")
    return str(rule)


def _ordinal_suffix(num: int) -> str:
    if num % 10 == 1 and num % 100 != 11:  # noqa: PLR2004
        return "st"
    if num % 10 == 2 and num % 100 != 12:  # noqa: PLR2004
        return "nd"
    if num % 10 == 3 and num % 100 != 13:  # noqa: PLR2004
        return "rd"
    return "th"


def _every(interval: int, unit: str) -> str:
    return f"Every {unit}" if interval == 1 else f"Every {interval} {unit}s"


def describe_recurrence(pattern: RecurrencePattern) -> str:
    """Human-readable description, e.g. "Every 2 weeks on Monday"."""
    if isinstance(pattern, DailyRecurrence):
        return _every(pattern.interval_days, "day")
    if isinstance(pattern, WeeklyRecurrence):
        return f"{_every(pattern.interval_weeks, 'week')} on {pattern.day_of_week.label}"
    if isinstance(pattern, MonthlyRecurrence):
        monthly = pattern.pattern
        prefix = _every(pattern.interval_months, "month")
        if isinstance(monthly, MonthlyByDate):
            return f"{prefix} on the {monthly.day_of_month}{_ordinal_suffix(monthly.day_of_month)}"
        ordinal = ORDINALS[monthly.week_of_month - 1]
        return f"{prefix} on the {ordinal} {monthly.day_of_week.label}"
    raise InvalidInputError(f"Unknown recurrence pattern: {pattern!r}")


def validate_recurring_config(  # noqa: PLR0912 - one branch per pattern field
    config: RecurringConfig | None, time_allocation_hours: float
) -> ValidationResult:
    """Validate a recurring config and its per-occurrence allocation.

    Args:
        config: Recurring configuration of the phase
        time_allocation_hours: Hours allocated to each occurrence

    Returns:
        ValidationResult with one reason per problem found
    """
    reasons: list[str] = []
    if config is None:
        return ValidationResult(False, ["Recurring phase must have recurrence configuration"])

    if config.rrule:
        try:
            rrulestr(config.rrule)
        except (ValueError, TypeError) as e:
            reasons.append(f"Invalid recurrence rule: {e}")

    pattern = config.pattern
    if isinstance(pattern, DailyRecurrence):
        if pattern.interval_days < 1:
            reasons.append("Recurrence interval must be at least 1")
    elif isinstance(pattern, WeeklyRecurrence):
        if pattern.interval_weeks < 1:
            reasons.append("Recurrence interval must be at least 1")
        if not 0 <= int(pattern.day_of_week) <= 6:  # noqa: PLR2004
            reasons.append("Weekly day of week must be between 0 (Monday) and 6 (Sunday)")
    elif isinstance(pattern, MonthlyRecurrence):
        if pattern.interval_months < 1:
            reasons.append("Recurrence interval must be at least 1")
        monthly = pattern.pattern
        if isinstance(monthly, MonthlyByDate):
            if not 1 <= monthly.day_of_month <= MAX_DAY_OF_MONTH:
                reasons.append("Monthly date must be between 1 and 31")
        elif isinstance(monthly, MonthlyByWeekday):
            if not 1 <= monthly.week_of_month <= LAST_WEEK_OF_MONTH:
                reasons.append("Monthly week of month must be between 1 and 5 (5 = last)")
        else:
            reasons.append(f"Unknown monthly pattern: {monthly!r}")
    else:
        reasons.append(f"Unknown recurrence pattern: {pattern!r}")

    if time_allocation_hours <= 0:
        reasons.append("Recurring phase must have positive time allocation per occurrence")

    return ValidationResult(is_valid=not reasons, reasons=reasons)
