"""Pydantic schemas for YAML plan validation."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from .exceptions import InvalidInputError
from .models import WEEKDAY_NAMES, Weekday


def _parse_weekday(value: Any) -> Weekday:
    try:
        return Weekday.parse(value)
    except InvalidInputError as e:
        raise ValueError(str(e)) from e


def _parse_time(value: Any) -> time:
    if isinstance(value, time):
        return value
    if isinstance(value, int):
        # YAML 1.1 reads unquoted 17:00 as sexagesimal minutes
        return time(value // 60, value % 60)
    if isinstance(value, str):
        return time.fromisoformat(value.strip())
    raise ValueError(f"Invalid time: {value!r}")


class TimeSlotSchema(BaseModel):
    """Schema for one working time slot."""

    start: time
    end: time

    @field_validator("start", "end", mode="before")
    @classmethod
    def coerce_time(cls, v: Any) -> time:
        return _parse_time(v)

    @model_validator(mode="after")
    def check_order(self) -> TimeSlotSchema:
        if self.end <= self.start:
            raise ValueError(f"Time slot end {self.end} must be after start {self.start}")
        return self


class SettingsSchema(BaseModel):
    """Schema for plan settings."""

    # weekday name -> slots; weekdays left out are non-working
    weekly_work_hours: dict[str, list[TimeSlotSchema]] | None = None

    @field_validator("weekly_work_hours")
    @classmethod
    def check_weekday_names(
        cls, v: dict[str, list[TimeSlotSchema]] | None
    ) -> dict[str, list[TimeSlotSchema]] | None:
        if v is None:
            return v
        for name in v:
            if name.lower() not in WEEKDAY_NAMES:
                raise ValueError(f"Unknown weekday '{name}'")
        return v


class ProjectSchema(BaseModel):
    """Schema for a project."""

    name: str | None = None
    start: date
    end: date | None = None
    estimated_hours: float = Field(default=0.0, ge=0)
    group: str = "default"
    color: str = ""
    continuous: bool = False

    @model_validator(mode="after")
    def check_dates(self) -> ProjectSchema:
        if self.continuous:
            return self
        if self.end is None:
            raise ValueError("Non-continuous project needs an 'end' date")
        if self.end < self.start:
            raise ValueError(f"Project end {self.end} is before start {self.start}")
        return self


class DailySchema(BaseModel):
    kind: Literal["daily"]
    interval_days: int = Field(default=1, ge=1)


class WeeklySchema(BaseModel):
    kind: Literal["weekly"]
    day_of_week: Weekday
    interval_weeks: int = Field(default=1, ge=1)

    @field_validator("day_of_week", mode="before")
    @classmethod
    def coerce_weekday(cls, v: Any) -> Weekday:
        return _parse_weekday(v)


class ByDateSchema(BaseModel):
    kind: Literal["by_date"]
    day_of_month: int = Field(ge=1, le=31)


class ByWeekdaySchema(BaseModel):
    kind: Literal["by_weekday"]
    week_of_month: int = Field(ge=1, le=5)  # 5 = last
    day_of_week: Weekday

    @field_validator("day_of_week", mode="before")
    @classmethod
    def coerce_weekday(cls, v: Any) -> Weekday:
        return _parse_weekday(v)


MonthlyPatternSchema = Annotated[Union[ByDateSchema, ByWeekdaySchema], Field(discriminator="kind")]


class MonthlySchema(BaseModel):
    kind: Literal["monthly"]
    pattern: MonthlyPatternSchema
    interval_months: int = Field(default=1, ge=1)


RecurrenceSchema = Annotated[
    Union[DailySchema, WeeklySchema, MonthlySchema], Field(discriminator="kind")
]


class PhaseSchema(BaseModel):
    """Schema for a phase (milestone) of a project."""

    project: str
    name: str | None = None
    start: date
    end: date
    hours: float = Field(default=0.0, ge=0)
    order: int = 0
    recurring: RecurrenceSchema | None = None
    rrule: str | None = None  # Pre-expanded rule replayed instead of the pattern

    @model_validator(mode="after")
    def check_rrule_needs_pattern(self) -> PhaseSchema:
        if self.rrule and self.recurring is None:
            raise ValueError("'rrule' is only allowed on recurring phases")
        return self


class HolidaySchema(BaseModel):
    """Schema for a holiday."""

    start: date
    end: date | None = None  # Defaults to a single day
    title: str = "Holiday"
    notes: str = ""


class EventSchema(BaseModel):
    """Schema for a calendar event."""

    start: datetime
    end: datetime
    project: str | None = None
    completed: bool = False
    title: str = ""

    @model_validator(mode="after")
    def check_order(self) -> EventSchema:
        if self.end < self.start:
            raise ValueError(f"Event end {self.end} is before start {self.start}")
        return self


class PlanSchema(BaseModel):
    """Schema for the entire plan YAML data. Entities are keyed by id."""

    settings: SettingsSchema = Field(default_factory=SettingsSchema)
    projects: dict[str, ProjectSchema] = Field(default_factory=dict)
    phases: dict[str, PhaseSchema] = Field(default_factory=dict)
    holidays: dict[str, HolidaySchema] = Field(default_factory=dict)
    events: dict[str, EventSchema] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_references(self) -> PlanSchema:
        for phase_id, phase in self.phases.items():
            if phase.project not in self.projects:
                raise ValueError(f"Phase '{phase_id}' references unknown project '{phase.project}'")
        for event_id, event in self.events.items():
            if event.project is not None and event.project not in self.projects:
                raise ValueError(f"Event '{event_id}' references unknown project '{event.project}'")
        return self
