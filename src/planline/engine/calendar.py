"""Calendar primitives: holidays, working days and time slots."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import date, datetime, timedelta

from planline.exceptions import InvalidInputError
from planline.models import DateRange, Holiday, TimeSlot, Weekday, WeeklyWorkHours


def _require_date(value: object, name: str = "date") -> date:
    # datetime is a date subclass; only plain calendar dates are accepted
    if isinstance(value, datetime) or not isinstance(value, date):
        raise InvalidInputError(f"{name} must be a date, got {type(value).__name__}")
    return value


def is_date_in_range(day: date, start: date, end: date) -> bool:
    """Check if day falls in the inclusive range [start, end]."""
    _require_date(day)
    _require_date(start, "start")
    _require_date(end, "end")
    if end < start:
        raise InvalidInputError(f"Range end {end} is before start {start}")
    return start <= day <= end


def is_holiday(day: date, holidays: Iterable[Holiday]) -> bool:
    """Check if day falls inside any holiday range."""
    _require_date(day)
    return any(holiday.start_date <= day <= holiday.end_date for holiday in holidays)


def is_working_day(day: date, weekly_hours: WeeklyWorkHours, holidays: Iterable[Holiday]) -> bool:
    """A working day is not a holiday and has at least one time slot on its weekday."""
    if is_holiday(day, holidays):
        return False
    return len(weekly_hours.slots_for(Weekday(day.weekday()))) > 0


def work_slots_for_day(day: date, weekly_hours: WeeklyWorkHours) -> list[TimeSlot]:
    """Return the ordered time slots configured for the weekday of day."""
    _require_date(day)
    return weekly_hours.slots_for(Weekday(day.weekday()))


def slot_hours(day: date, weekly_hours: WeeklyWorkHours) -> float:
    """Total working hours available on day according to the weekly schedule."""
    return sum(slot.hours for slot in work_slots_for_day(day, weekly_hours))


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every date from start to end inclusive."""
    _require_date(start, "start")
    _require_date(end, "end")
    return iter(DateRange(start, end))


def working_days_between(
    start: date,
    end: date,
    weekly_hours: WeeklyWorkHours,
    holidays: Iterable[Holiday],
) -> list[date]:
    """List working days in the inclusive range [start, end]."""
    holiday_list = list(holidays)
    return [
        day for day in iter_dates(start, end) if is_working_day(day, weekly_hours, holiday_list)
    ]


def week_start(day: date) -> date:
    """Monday of the week containing day."""
    _require_date(day)
    return day - timedelta(days=day.weekday())


def split_hours_into_slots(
    day: date, hours: float, weekly_hours: WeeklyWorkHours
) -> list[tuple[datetime, datetime]]:
    """Lay an hour count out over the day's working slots, earliest first.

    Used to turn an estimate into concrete event-like blocks. Hours beyond
    the day's slot capacity are dropped.
    """
    if hours < 0:
        raise InvalidInputError(f"Hours must be non-negative, got {hours}")
    blocks: list[tuple[datetime, datetime]] = []
    remaining_minutes = round(hours * 60)
    for slot in work_slots_for_day(day, weekly_hours):
        if remaining_minutes <= 0:
            break
        slot_start = datetime.combine(day, slot.start)
        slot_minutes = round(slot.hours * 60)
        used = min(slot_minutes, remaining_minutes)
        blocks.append((slot_start, slot_start + timedelta(minutes=used)))
        remaining_minutes -= used
    return blocks
