"""Holiday rules: overlap detection and auto-adjustment suggestions.

Holidays are inclusive date ranges and may never overlap each other. A
conflicting candidate is rejected with a suggested range that starts or ends
immediately outside the conflict; the caller decides whether to accept it.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import timedelta

from .logger import get_logger
from .models import DateRange, Draft, Holiday, Persisted, unwrap

logger = get_logger()

MAX_TITLE_LENGTH = 200

HolidayInput = Holiday | Draft[Holiday] | Persisted[Holiday]


def _default_str_list() -> list[str]:
    return []


@dataclass
class HolidayPlacement:
    """Result of checking a candidate holiday against existing ones."""

    is_valid: bool
    conflicts: list[str] = field(default_factory=_default_str_list)  # Conflicting holiday ids
    reasons: list[str] = field(default_factory=_default_str_list)
    suggestion: DateRange | None = None  # Auto-adjusted range, needs caller confirmation
    message: str = ""


def _range_of(item: DateRange | HolidayInput) -> DateRange:
    if isinstance(item, DateRange):
        return item
    holiday = unwrap(item)
    return DateRange(holiday.start_date, holiday.end_date)


def holidays_overlap(first: DateRange | HolidayInput, second: DateRange | HolidayInput) -> bool:
    """Check if two inclusive ranges share at least one date."""
    return _range_of(first).overlaps(_range_of(second))


def find_overlapping_holidays(
    candidate: DateRange | HolidayInput,
    holidays: Iterable[HolidayInput],
    exclude_id: str | None = None,
) -> list[Holiday]:
    """Return existing holidays overlapping the candidate, ordered by start date."""
    candidate_range = _range_of(candidate)
    conflicts = [
        holiday
        for holiday in (unwrap(item) for item in holidays)
        if holiday.id != exclude_id and candidate_range.overlaps(holiday.range)
    ]
    return sorted(conflicts, key=lambda h: (h.start_date, h.id))


def _trimmed(candidate: DateRange, existing: list[Holiday]) -> DateRange | None:
    start, end = candidate.start, candidate.end
    for _ in range(len(existing) + 1):
        if start > end:
            return None
        current = DateRange(start, end)
        conflicts = find_overlapping_holidays(current, existing)
        if not conflicts:
            return current
        start_conflict = next((h for h in conflicts if h.range.contains(start)), None)
        if start_conflict is not None:
            start = start_conflict.end_date + timedelta(days=1)
            continue
        end_conflict = next((h for h in conflicts if h.range.contains(end)), None)
        if end_conflict is not None:
            end = end_conflict.start_date - timedelta(days=1)
            continue
        return None
    return None


def _shifted(candidate: DateRange, existing: list[Holiday]) -> DateRange | None:
    conflicts = find_overlapping_holidays(candidate, existing)
    if not conflicts:
        return candidate
    length = timedelta(days=candidate.days - 1)
    after_start = max(h.end_date for h in conflicts) + timedelta(days=1)
    after = DateRange(after_start, after_start + length)
    if not find_overlapping_holidays(after, existing):
        return after
    before_end = min(h.start_date for h in conflicts) - timedelta(days=1)
    before = DateRange(before_end - length, before_end)
    if not find_overlapping_holidays(before, existing):
        return before
    return None


def suggest_adjusted_dates(
    candidate: DateRange,
    holidays: Iterable[HolidayInput],
    exclude_id: str | None = None,
    keep_duration: bool = False,
) -> DateRange | None:
    """Suggest a conflict-free range just outside the conflicting holidays.

    By default the candidate is trimmed: a start inside a conflict moves to the
    day after it, then an end inside one moves to the day before it. When
    trimming leaves nothing (or keep_duration is set, as for a moved holiday)
    the whole range is shifted to start the day after the conflicts, or failing
    that to end the day before them. Returns None when neither fits.
    """
    existing = [h for h in (unwrap(item) for item in holidays) if h.id != exclude_id]
    if not keep_duration:
        trimmed = _trimmed(candidate, existing)
        if trimmed is not None:
            return trimmed
    return _shifted(candidate, existing)


def _conflict_message(conflicts: list[Holiday], suggestion: DateRange | None) -> str:
    titles = ", ".join(f"'{h.title}' ({h.range})" for h in conflicts)
    message = f"Holiday overlaps with {titles}"
    if suggestion is not None:
        message += f". Suggested dates: {suggestion}"
    return message


def validate_holiday_placement(
    candidate: HolidayInput,
    holidays: Iterable[HolidayInput],
    exclude_id: str | None = None,
    keep_duration: bool = False,
) -> HolidayPlacement:
    """Validate a holiday against existing ones without raising.

    Args:
        candidate: Holiday to place (a draft or an edit of a persisted one)
        holidays: Existing holidays of the user
        exclude_id: Holiday id to ignore, normally the candidate's own id
        keep_duration: Suggest only ranges as long as the candidate (moves)

    Returns:
        HolidayPlacement with conflicts and, when possible, a suggested range
    """
    holiday = unwrap(candidate)
    existing = list(holidays)
    reasons: list[str] = []

    title = holiday.title.strip()
    if not title:
        reasons.append("Holiday title is required")
    elif len(title) > MAX_TITLE_LENGTH:
        reasons.append(f"Holiday title must be at most {MAX_TITLE_LENGTH} characters")
    if holiday.end_date < holiday.start_date:
        reasons.append("Holiday end date must not be before its start date")
        return HolidayPlacement(is_valid=False, reasons=reasons, message=reasons[-1])

    if exclude_id is None and isinstance(candidate, Persisted):
        exclude_id = holiday.id
    conflicts = find_overlapping_holidays(holiday, existing, exclude_id)
    suggestion = None
    message = ""
    if conflicts:
        suggestion = suggest_adjusted_dates(holiday.range, existing, exclude_id, keep_duration)
        message = _conflict_message(conflicts, suggestion)
        reasons.append(message)
        logger.checks(f"  Holiday '{holiday.id}' conflicts with {[h.id for h in conflicts]}")

    return HolidayPlacement(
        is_valid=not reasons,
        conflicts=[h.id for h in conflicts],
        reasons=reasons,
        suggestion=suggestion,
        message=message or (reasons[0] if reasons else ""),
    )
