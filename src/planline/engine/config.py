"""Configuration classes for the planning engine."""

from enum import Enum

from pydantic import BaseModel, Field


class TimelineMode(str, Enum):
    """Zoom level of the timeline a drag happens on."""

    DAYS = "days"
    WEEKS = "weeks"


class RecurrenceConfig(BaseModel):
    """Configuration for recurring phase expansion."""

    # Synthetic upper bound for continuous (open-ended) projects
    continuous_horizon_days: int = Field(default=365, ge=1)
    # Safety cap on the number of occurrences from a single expansion
    max_occurrences: int = Field(default=1000, ge=1)


class EstimateConfig(BaseModel):
    """Configuration for day estimate calculation."""

    # Decimal places per-day hours are rounded to
    hour_precision: int = Field(default=2, ge=0, le=6)
    events_consume_budget: bool = True  # Event hours outside phases reduce the auto-estimate budget
    skip_past_days: bool = True  # With a "today", spread auto-estimates only from today onwards


class LayoutConfig(BaseModel):
    """Configuration for timeline row layout."""

    # A row is free for a project when (project.start - row_end).days >= min_gap_days
    min_gap_days: int = Field(default=1, ge=1)


class DragConfig(BaseModel):
    """Configuration for interactive drag sessions."""

    day_width_px: float = Field(default=40.0, gt=0)
    week_width_px: float = Field(default=77.0, gt=0)  # Width of one week column in weeks mode
    frame_interval_ms: int = Field(default=16, ge=0)  # Visual recompute at most once per frame
    persist_interval_ms: int = Field(default=50, ge=0)  # Silent write-through in days mode
    weeks_persist_interval_ms: int = Field(default=100, ge=0)  # Silent write-through in weeks mode
    write_through: bool = True  # Persist provisional dates while dragging


class EngineConfig(BaseModel):
    """Top-level configuration for the planning engine."""

    recurrence: RecurrenceConfig = RecurrenceConfig()
    estimates: EstimateConfig = EstimateConfig()
    layout: LayoutConfig = LayoutConfig()
    drag: DragConfig = DragConfig()
