"""Core dataclasses for the planning engine (derived, never persisted)."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum

from planline.models import (
    CalendarEvent,
    DateRange,
    Holiday,
    Phase,
    Project,
    WeeklyWorkHours,
)


def _default_str_list() -> list[str]:
    return []


def _default_rows() -> dict[str, int]:
    return {}


class EstimateSource(str, Enum):
    """Where the hours of a day estimate come from."""

    EVENT = "event"
    MILESTONE_ALLOCATION = "milestone-allocation"
    PROJECT_AUTO_ESTIMATE = "project-auto-estimate"


@dataclass(frozen=True)
class Occurrence:
    """A concrete, date-bounded occurrence of a recurring phase template."""

    index: int  # 0-based position in the expansion
    start_date: date
    end_date: date

    @property
    def range(self) -> DateRange:
        return DateRange(self.start_date, self.end_date)

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days


@dataclass(frozen=True)
class DayEstimate:
    """Hours attributed to one project on one date from one source."""

    date: date
    project_id: str
    hours: float
    source: EstimateSource
    phase_id: str | None = None
    is_planned_event: bool = False
    is_completed_event: bool = False


@dataclass
class ValidationResult:
    """Outcome of a non-fatal validation rule."""

    is_valid: bool
    reasons: list[str] = field(default_factory=_default_str_list)
    warnings: list[str] = field(default_factory=_default_str_list)

    def merge(self, other: ValidationResult) -> ValidationResult:
        return ValidationResult(
            is_valid=self.is_valid and other.is_valid,
            reasons=[*self.reasons, *other.reasons],
            warnings=[*self.warnings, *other.warnings],
        )


@dataclass
class BudgetValidation:
    """Phase allocations compared against a project's hour budget."""

    is_valid: bool
    total_allocated: float
    project_budget: float
    overage_hours: float
    utilization_percent: float
    recurring_hours_per_occurrence: float = 0.0  # Reported only; never counted in the total
    reasons: list[str] = field(default_factory=_default_str_list)
    warnings: list[str] = field(default_factory=_default_str_list)

    @property
    def remaining(self) -> float:
        """Unallocated hours (negative when over budget)."""
        return self.project_budget - self.total_allocated


@dataclass
class RowLayout:
    """Assignment of projects in one group to visual rows."""

    group_id: str
    rows: dict[str, int] = field(default_factory=_default_rows)  # project_id -> row index
    row_count: int = 0

    def projects_in_row(self, row: int) -> list[str]:
        return [project_id for project_id, index in self.rows.items() if index == row]


class WriteMode(str, Enum):
    """How a repository write is surfaced to the user."""

    PROPOSE = "propose"  # Silent, provisional write during a drag
    COMMIT = "commit"  # Final write; user-facing confirmation allowed


class EntityType(str, Enum):
    PROJECT = "project"
    PHASE = "phase"
    HOLIDAY = "holiday"
    EVENT = "event"
    SETTINGS = "settings"


class ChangeOperation(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeNotification:
    """A change reported by the repository. Delivery may repeat or reorder."""

    entity_type: EntityType
    entity_id: str
    operation: ChangeOperation


@dataclass
class PlanSnapshot:
    """Entities read from the repository at one point in time."""

    projects: list[Project]
    phases: list[Phase]
    holidays: list[Holiday]
    events: list[CalendarEvent]
    weekly_hours: WeeklyWorkHours

    def project(self, project_id: str) -> Project | None:
        return next((p for p in self.projects if p.id == project_id), None)

    def phases_for(self, project_id: str) -> list[Phase]:
        return [p for p in self.phases if p.project_id == project_id]

    def events_for(self, project_id: str) -> list[CalendarEvent]:
        return [e for e in self.events if e.project_id == project_id]

    def with_entity(self, entity: Project | Phase | Holiday) -> PlanSnapshot:
        """Copy of the snapshot with one entity replaced by id."""
        if isinstance(entity, Project):
            projects = [entity if p.id == entity.id else p for p in self.projects]
            return replace(self, projects=projects)
        if isinstance(entity, Phase):
            phases = [entity if p.id == entity.id else p for p in self.phases]
            return replace(self, phases=phases)
        holidays = [entity if h.id == entity.id else h for h in self.holidays]
        return replace(self, holidays=holidays)
