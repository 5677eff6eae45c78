"""Data models for Planline."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import IntEnum
from typing import Generic, Literal, TypeVar, Union

from .exceptions import InvalidInputError

T = TypeVar("T")

# Largest date used when a range must stay open-ended
FAR_FUTURE = date(9999, 12, 31)

WEEKDAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


class Weekday(IntEnum):
    """Day of week, numbered like date.weekday() (Monday=0)."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def parse(cls, value: str | int) -> Weekday:
        """Parse a weekday from its name ("monday", "Mon") or number (0-6)."""
        if isinstance(value, int):
            if 0 <= value <= 6:  # noqa: PLR2004
                return cls(value)
            raise InvalidInputError(f"Weekday number must be 0-6, got {value}")
        text = value.strip().lower()
        for index, name in enumerate(WEEKDAY_NAMES):
            if name == text or name[:3] == text:
                return cls(index)
        raise InvalidInputError(f"Unknown weekday: '{value}'")

    @property
    def label(self) -> str:
        return WEEKDAY_NAMES[self.value].title()


@dataclass(frozen=True)
class DateRange:
    """An inclusive, closed range of calendar dates."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if not isinstance(self.start, date) or not isinstance(self.end, date):
            raise InvalidInputError("DateRange bounds must be dates")
        if self.end < self.start:
            raise InvalidInputError(f"Range end {self.end} is before start {self.start}")

    @property
    def days(self) -> int:
        """Number of days in the range (inclusive)."""
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def overlaps(self, other: DateRange) -> bool:
        return self.start <= other.end and other.start <= self.end

    def intersect(self, other: DateRange) -> DateRange | None:
        """Return the overlapping part of two ranges, or None if disjoint."""
        if not self.overlaps(other):
            return None
        return DateRange(max(self.start, other.start), min(self.end, other.end))

    def shift(self, days: int) -> DateRange:
        return DateRange(self.start + timedelta(days=days), self.end + timedelta(days=days))

    def __iter__(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


@dataclass(frozen=True)
class TimeSlot:
    """A wall-clock working interval within a day."""

    start: time
    end: time

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise InvalidInputError(f"Time slot end {self.end} must be after start {self.start}")

    @property
    def hours(self) -> float:
        start_minutes = self.start.hour * 60 + self.start.minute
        end_minutes = self.end.hour * 60 + self.end.minute
        return (end_minutes - start_minutes) / 60


def _default_slots() -> dict[Weekday, list[TimeSlot]]:
    return {}


@dataclass
class WeeklyWorkHours:
    """Working time slots per weekday. A weekday with no slots is non-working."""

    slots: dict[Weekday, list[TimeSlot]] = field(default_factory=_default_slots)

    def slots_for(self, weekday: Weekday | int) -> list[TimeSlot]:
        return sorted(self.slots.get(Weekday(weekday), []), key=lambda s: s.start)

    def hours_for(self, weekday: Weekday | int) -> float:
        return sum(slot.hours for slot in self.slots_for(weekday))

    @classmethod
    def standard(
        cls,
        start: time = time(9, 0),
        end: time = time(17, 0),
        days: tuple[Weekday, ...] = (
            Weekday.MONDAY,
            Weekday.TUESDAY,
            Weekday.WEDNESDAY,
            Weekday.THURSDAY,
            Weekday.FRIDAY,
        ),
    ) -> WeeklyWorkHours:
        """Create a schedule with the same single slot on each of the given days."""
        return cls(slots={day: [TimeSlot(start, end)] for day in days})


@dataclass(frozen=True)
class DailyRecurrence:
    """Repeat every N calendar days."""

    interval_days: int = 1
    kind: Literal["daily"] = "daily"


@dataclass(frozen=True)
class WeeklyRecurrence:
    """Repeat every N weeks on a given weekday."""

    day_of_week: Weekday
    interval_weeks: int = 1
    kind: Literal["weekly"] = "weekly"


@dataclass(frozen=True)
class MonthlyByDate:
    """Monthly on a fixed day of month (clamped to the month's last day)."""

    day_of_month: int
    kind: Literal["by_date"] = "by_date"


@dataclass(frozen=True)
class MonthlyByWeekday:
    """Monthly on the Nth weekday of the month. week_of_month=5 means the last one."""

    week_of_month: int
    day_of_week: Weekday
    kind: Literal["by_weekday"] = "by_weekday"


MonthlyPattern = Union[MonthlyByDate, MonthlyByWeekday]


@dataclass(frozen=True)
class MonthlyRecurrence:
    """Repeat every N months following a monthly pattern."""

    pattern: MonthlyPattern
    interval_months: int = 1
    kind: Literal["monthly"] = "monthly"


RecurrencePattern = Union[DailyRecurrence, WeeklyRecurrence, MonthlyRecurrence]


@dataclass(frozen=True)
class RecurringConfig:
    """Recurrence of a phase template, with an optional pre-expanded RFC 5545 rule."""

    pattern: RecurrencePattern
    rrule: str | None = None


@dataclass
class Project:
    """A project with an hour budget spread across its date window."""

    id: str
    name: str
    start_date: date
    end_date: date
    estimated_hours: float = 0.0
    group_id: str = "default"
    color: str = ""
    continuous: bool = False

    def __post_init__(self) -> None:
        if self.estimated_hours < 0:
            raise InvalidInputError(f"Project '{self.id}' has negative estimated hours")
        if not self.continuous and self.end_date < self.start_date:
            raise InvalidInputError(
                f"Project '{self.id}' ends ({self.end_date}) before it starts ({self.start_date})"
            )

    def window(self, horizon_days: int) -> DateRange:
        """Date window of the project; continuous projects end at start + horizon_days."""
        if self.continuous:
            return DateRange(self.start_date, self.start_date + timedelta(days=horizon_days))
        return DateRange(self.start_date, self.end_date)


@dataclass
class Phase:
    """A phase (milestone) of a project with its own hour allocation.

    A phase with a recurring config is a template: it stands for a sequence of
    occurrences, each allocated ``time_allocation_hours``.
    """

    id: str
    project_id: str
    start_date: date
    end_date: date
    time_allocation_hours: float = 0.0
    name: str = ""
    order: int = 0
    recurring: RecurringConfig | None = None

    @property
    def is_recurring(self) -> bool:
        return self.recurring is not None

    @property
    def range(self) -> DateRange:
        return DateRange(self.start_date, self.end_date)


@dataclass
class Holiday:
    """A user holiday: no work is estimated on these dates."""

    id: str
    start_date: date
    end_date: date
    title: str = "Holiday"
    notes: str = ""

    @property
    def range(self) -> DateRange:
        return DateRange(self.start_date, self.end_date)


@dataclass
class CalendarEvent:
    """A calendar event; its hours take priority over estimates on the dates it covers."""

    id: str
    start: datetime
    end: datetime
    project_id: str | None = None
    completed: bool = False
    title: str = ""

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise InvalidInputError(f"Event '{self.id}' ends before it starts")


@dataclass(frozen=True)
class Draft(Generic[T]):
    """An entity held locally that has not been saved yet."""

    entity: T

    @property
    def is_persisted(self) -> bool:
        return False


@dataclass(frozen=True)
class Persisted(Generic[T]):
    """An entity as last read from (or written to) the repository."""

    entity: T

    @property
    def is_persisted(self) -> bool:
        return True


def unwrap(item: T | Draft[T] | Persisted[T]) -> T:
    """Return the entity inside a Draft/Persisted wrapper (or the item itself)."""
    if isinstance(item, (Draft, Persisted)):
        return item.entity  # type: ignore[return-value]
    return item
