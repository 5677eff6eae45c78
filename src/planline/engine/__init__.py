"""Engine package - calendar-aware planning of project hour budgets.

This package provides:
- Recurrence expansion of recurring phase templates into occurrences
- Budget validation of phase allocations against project budgets
- Per-day hour estimates from events, phases and the remaining budget
- Row layout of overlapping projects within a group
- Interactive drag/resize sessions with throttled recompute and validated commits

Main entry points:
- PlanningService: High-level service over a PlanningRepository
- DragCoordinator: Drag/resize state machine
- compute_day_estimates, validate_allocation, expand_recurrence, layout_rows

Configuration:
- EngineConfig: Main configuration (recurrence, estimates, layout, drag)
"""

# Budget validation
from .budget import simulate, validate_allocation, validate_budget, validate_phase_against_budget

# Calendar primitives
from .calendar import (
    is_date_in_range,
    is_holiday,
    is_working_day,
    work_slots_for_day,
    working_days_between,
)

# Configuration
from .config import (
    DragConfig,
    EngineConfig,
    EstimateConfig,
    LayoutConfig,
    RecurrenceConfig,
    TimelineMode,
)

# Core dataclasses
from .core import (
    BudgetValidation,
    ChangeNotification,
    ChangeOperation,
    DayEstimate,
    EntityType,
    EstimateSource,
    Occurrence,
    PlanSnapshot,
    RowLayout,
    ValidationResult,
    WriteMode,
)

# Drag sessions
from .drag import DragAction, DragCoordinator, DragFrame, DragOutcome, DragResult, DragState

# Day estimates
from .estimates import aggregate_by_date, compute_day_estimates, total_hours

# Row layout
from .layout import layout_groups, layout_rows

# Week overrides
from .overrides import WeekOverrideStore

# Protocols
from .protocols import PlanningRepository

# Recurrence
from .recurrence import (
    RecurrenceSequence,
    describe_recurrence,
    expand_recurrence,
    to_rrule,
    validate_recurring_config,
)
from .repository import InMemoryRepository

# High-level service
from .service import PlanningService

# Throttling
from .throttle import Throttle

# Phase rules
from .validator import check_recurring_exclusivity, validate_phase, validate_phase_window

__all__ = [
    "BudgetValidation",
    "ChangeNotification",
    "ChangeOperation",
    "DayEstimate",
    "DragAction",
    "DragConfig",
    "DragCoordinator",
    "DragFrame",
    "DragOutcome",
    "DragResult",
    "DragState",
    "EngineConfig",
    "EntityType",
    "EstimateConfig",
    "EstimateSource",
    "InMemoryRepository",
    "LayoutConfig",
    "Occurrence",
    "PlanSnapshot",
    "PlanningRepository",
    "PlanningService",
    "RecurrenceConfig",
    "RecurrenceSequence",
    "RowLayout",
    "Throttle",
    "TimelineMode",
    "ValidationResult",
    "WeekOverrideStore",
    "WriteMode",
    "aggregate_by_date",
    "check_recurring_exclusivity",
    "compute_day_estimates",
    "describe_recurrence",
    "expand_recurrence",
    "is_date_in_range",
    "is_holiday",
    "is_working_day",
    "layout_groups",
    "layout_rows",
    "simulate",
    "to_rrule",
    "total_hours",
    "validate_allocation",
    "validate_budget",
    "validate_phase",
    "validate_phase_against_budget",
    "validate_phase_window",
    "validate_recurring_config",
    "work_slots_for_day",
    "working_days_between",
]
