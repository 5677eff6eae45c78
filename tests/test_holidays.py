"""Tests for holiday overlap rules."""

from datetime import date

from planline.holidays import (
    MAX_TITLE_LENGTH,
    find_overlapping_holidays,
    holidays_overlap,
    suggest_adjusted_dates,
    validate_holiday_placement,
)
from planline.models import DateRange, Draft, Holiday, Persisted


def jan(start: int, end: int) -> DateRange:
    return DateRange(date(2025, 1, start), date(2025, 1, end))


def holiday(holiday_id: str, start: int, end: int, title: str = "") -> Holiday:
    return Holiday(holiday_id, date(2025, 1, start), date(2025, 1, end), title or holiday_id)


class TestOverlap:
    """Test overlap detection."""

    def test_shared_boundary_day_overlaps(self) -> None:
        assert holidays_overlap(jan(1, 3), jan(3, 5))

    def test_adjacent_ranges_do_not_overlap(self) -> None:
        assert not holidays_overlap(jan(1, 3), jan(4, 5))

    def test_accepts_holidays(self) -> None:
        assert holidays_overlap(holiday("a", 1, 3), Draft(holiday("b", 2, 2)))

    def test_find_overlapping_sorted(self) -> None:
        existing = [holiday("late", 10, 12), holiday("early", 1, 3), holiday("far", 20, 21)]
        found = find_overlapping_holidays(jan(2, 11), existing)
        assert [h.id for h in found] == ["early", "late"]

    def test_find_overlapping_excludes_id(self) -> None:
        existing = [holiday("a", 1, 3)]
        assert find_overlapping_holidays(jan(2, 2), existing, exclude_id="a") == []


class TestSuggestAdjustedDates:
    """Test auto-adjust suggestions."""

    def test_start_inside_moves_start(self) -> None:
        assert suggest_adjusted_dates(jan(2, 4), [holiday("h1", 1, 3)]) == jan(4, 4)

    def test_end_inside_moves_end(self) -> None:
        assert suggest_adjusted_dates(jan(8, 11), [holiday("h2", 10, 12)]) == jan(8, 9)

    def test_both_ends_trimmed(self) -> None:
        existing = [holiday("h1", 1, 3), holiday("h2", 10, 12)]
        assert suggest_adjusted_dates(jan(2, 11), existing) == jan(4, 9)

    def test_fully_covered_shifts_after_conflict(self) -> None:
        assert suggest_adjusted_dates(jan(2, 3), [holiday("h1", 1, 5)]) == jan(6, 7)

    def test_contained_holiday_shifts_whole_range(self) -> None:
        assert suggest_adjusted_dates(jan(1, 10), [holiday("h1", 4, 5)]) == jan(6, 15)

    def test_shift_before_when_after_is_taken(self) -> None:
        existing = [holiday("h1", 10, 12), holiday("h2", 13, 20)]
        assert suggest_adjusted_dates(jan(10, 12), existing) == jan(7, 9)

    def test_no_room_on_either_side(self) -> None:
        existing = [
            holiday("h1", 5, 6),
            holiday("h2", 7, 8),
            holiday("h3", 2, 4),
            holiday("h4", 9, 12),
        ]
        assert suggest_adjusted_dates(jan(5, 7), existing) is None

    def test_keep_duration_skips_trimming(self) -> None:
        suggestion = suggest_adjusted_dates(jan(2, 4), [holiday("h1", 1, 3)], keep_duration=True)
        assert suggestion == jan(4, 6)

    def test_no_conflict_returns_candidate(self) -> None:
        assert suggest_adjusted_dates(jan(5, 6), [holiday("h1", 1, 3)]) == jan(5, 6)


class TestValidatePlacement:
    """Test the full placement check."""

    def test_valid_placement(self) -> None:
        result = validate_holiday_placement(holiday("new", 5, 6), [holiday("h1", 1, 3)])
        assert result.is_valid
        assert result.conflicts == []
        assert result.message == ""

    def test_conflict_with_suggestion(self) -> None:
        existing = [holiday("h1", 1, 3, "New Year")]
        result = validate_holiday_placement(Draft(holiday("new", 2, 4)), existing)
        assert not result.is_valid
        assert result.conflicts == ["h1"]
        assert result.suggestion == jan(4, 4)
        assert result.message == (
            "Holiday overlaps with 'New Year' (2025-01-01..2025-01-03). "
            "Suggested dates: 2025-01-04..2025-01-04"
        )

    def test_persisted_ignores_itself(self) -> None:
        existing = [holiday("h1", 1, 3)]
        moved = Persisted(holiday("h1", 2, 4))
        assert validate_holiday_placement(moved, existing).is_valid

    def test_draft_with_same_id_conflicts(self) -> None:
        existing = [holiday("h1", 1, 3)]
        assert not validate_holiday_placement(Draft(holiday("h1", 2, 4)), existing).is_valid

    def test_title_required(self) -> None:
        blank = Holiday("x", date(2025, 1, 5), date(2025, 1, 5), " ")
        result = validate_holiday_placement(blank, [])
        assert result.reasons == ["Holiday title is required"]

    def test_title_too_long(self) -> None:
        long_title = "x" * (MAX_TITLE_LENGTH + 1)
        result = validate_holiday_placement(holiday("x", 5, 5, long_title), [])
        assert not result.is_valid

    def test_inverted_dates(self) -> None:
        inverted = Holiday("x", date(2025, 1, 5), date(2025, 1, 2), "Trip")
        result = validate_holiday_placement(inverted, [holiday("h1", 1, 3)])
        assert not result.is_valid
        assert result.conflicts == []
        assert "before its start" in result.message
