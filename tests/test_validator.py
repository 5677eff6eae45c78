"""Tests for phase validation rules."""

from dataclasses import replace
from datetime import date

from planline.engine.validator import (
    check_recurring_exclusivity,
    validate_phase,
    validate_phase_dates,
    validate_phase_window,
)
from planline.models import Draft, Phase, Project, RecurringConfig, Weekday, WeeklyRecurrence

WEEKLY = RecurringConfig(WeeklyRecurrence(Weekday.MONDAY))


class TestDatesAndWindow:
    """Test date order and project window checks."""

    def test_start_after_end(self, phase: Phase) -> None:
        inverted = replace(phase, start_date=date(2025, 1, 12))
        assert not validate_phase_dates(inverted).is_valid
        assert validate_phase_dates(phase).is_valid

    def test_within_window(self, phase: Phase, project: Project) -> None:
        assert validate_phase_window(phase, project).is_valid

    def test_before_project_start(self, phase: Phase, project: Project) -> None:
        early = replace(phase, start_date=date(2025, 1, 3))
        result = validate_phase_window(early, project)
        assert not result.is_valid
        assert "before project 'Alpha' starts" in result.reasons[0]

    def test_after_project_end(self, phase: Phase, project: Project) -> None:
        late = replace(phase, end_date=date(2025, 1, 20))
        result = validate_phase_window(late, project)
        assert not result.is_valid
        assert "after project 'Alpha' ends" in result.reasons[0]

    def test_continuous_project_has_no_end_bound(self, phase: Phase, project: Project) -> None:
        late = replace(phase, end_date=date(2025, 6, 1))
        assert validate_phase_window(late, replace(project, continuous=True)).is_valid

    def test_recurring_template_has_no_end_bound(self, phase: Phase, project: Project) -> None:
        template = replace(phase, end_date=date(2025, 3, 1), recurring=WEEKLY)
        assert validate_phase_window(template, project).is_valid


class TestRecurringExclusivity:
    """Test that recurring and split phases never mix."""

    def test_second_recurring_rejected(self, phase: Phase) -> None:
        existing = [replace(phase, id="r1", recurring=WEEKLY)]
        result = check_recurring_exclusivity(replace(phase, id="r2", recurring=WEEKLY), existing)
        assert result.reasons == ["Project already has a recurring phase"]

    def test_recurring_with_split_rejected(self, phase: Phase) -> None:
        result = check_recurring_exclusivity(replace(phase, id="r1", recurring=WEEKLY), [phase])
        assert result.reasons == ["Cannot add a recurring phase to a project with split phases"]

    def test_split_with_recurring_rejected(self, phase: Phase) -> None:
        existing = [replace(phase, id="r1", recurring=WEEKLY)]
        result = check_recurring_exclusivity(replace(phase, id="s2"), existing)
        assert result.reasons == ["Cannot add a split phase to a project with a recurring phase"]

    def test_update_of_own_recurring_phase(self, phase: Phase) -> None:
        template = replace(phase, id="r1", recurring=WEEKLY)
        assert check_recurring_exclusivity(template, [template]).is_valid

    def test_other_projects_ignored(self, phase: Phase) -> None:
        existing = [replace(phase, id="r1", project_id="other", recurring=WEEKLY)]
        assert check_recurring_exclusivity(phase, existing).is_valid


class TestValidatePhase:
    """Test the combined phase validation."""

    def test_valid_phase(self, phase: Phase, project: Project) -> None:
        result = validate_phase(Draft(phase), project, [])
        assert result.is_valid
        assert result.reasons == []

    def test_collects_every_reason(self, phase: Phase, project: Project) -> None:
        bad = replace(phase, start_date=date(2025, 1, 1), time_allocation_hours=60)
        result = validate_phase(bad, project, [])
        assert not result.is_valid
        assert any("before project" in r for r in result.reasons)
        assert any("exceed project budget" in r for r in result.reasons)

    def test_negative_hours(self, phase: Phase, project: Project) -> None:
        result = validate_phase(replace(phase, time_allocation_hours=-1), project, [])
        assert "Phase hours must not be negative" in result.reasons

    def test_recurring_without_allocation(self, phase: Phase, project: Project) -> None:
        template = replace(phase, recurring=WEEKLY, time_allocation_hours=0)
        result = validate_phase(template, project, [])
        assert not result.is_valid
        assert any("positive time allocation" in r for r in result.reasons)

    def test_budget_warnings_carried(self, phase: Phase, project: Project) -> None:
        result = validate_phase(replace(phase, time_allocation_hours=25), project, [])
        assert result.is_valid
        assert result.warnings
