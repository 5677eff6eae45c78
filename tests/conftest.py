"""Pytest configuration and fixtures for planline tests."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import date
from pathlib import Path

import pytest

from planline.logger import reset_logger
from planline.models import Phase, Project, WeeklyWorkHours

PLAN_YAML = """
settings:
  weekly_work_hours:
    monday: [{start: "09:00", end: "17:00"}]
    tuesday: [{start: "09:00", end: "17:00"}]
    wednesday: [{start: "09:00", end: "17:00"}]
    thursday: [{start: "09:00", end: "17:00"}]
    friday: [{start: "09:00", end: "17:00"}]

projects:
  alpha:
    name: Alpha
    start: 2025-01-06
    end: 2025-01-17
    estimated_hours: 40
    group: web
  beta:
    name: Beta
    start: 2025-01-13
    end: 2025-01-24
    estimated_hours: 20
    group: web
  gamma:
    name: Gamma
    start: 2025-01-20
    end: 2025-01-31
    estimated_hours: 10
    group: web
  ops:
    name: Operations
    start: 2025-01-06
    continuous: true
    group: support

phases:
  design:
    project: alpha
    start: 2025-01-06
    end: 2025-01-10
    hours: 16
  standup:
    project: ops
    start: 2025-01-06
    end: 2025-01-06
    hours: 2
    recurring:
      kind: weekly
      day_of_week: monday

holidays:
  new-year:
    start: 2025-01-01
    end: 2025-01-03
    title: New Year

events:
  kickoff:
    project: alpha
    start: 2025-01-13T09:00:00
    end: 2025-01-13T12:00:00
    title: Kickoff
    completed: true
"""


@pytest.fixture(autouse=True)
def clean_logger() -> Iterator[None]:
    """Leave the planline logger unconfigured after every test."""
    yield
    reset_logger()


@pytest.fixture
def weekly_hours() -> WeeklyWorkHours:
    """Monday to Friday, 9:00-17:00."""
    return WeeklyWorkHours.standard()


@pytest.fixture
def project() -> Project:
    """Two working weeks (Jan 6-17, 2025) with a 40h budget."""
    return Project(
        id="alpha",
        name="Alpha",
        start_date=date(2025, 1, 6),
        end_date=date(2025, 1, 17),
        estimated_hours=40,
    )


@pytest.fixture
def phase() -> Phase:
    """First week of the project with 16h."""
    return Phase(
        id="design",
        project_id="alpha",
        start_date=date(2025, 1, 6),
        end_date=date(2025, 1, 10),
        time_allocation_hours=16,
        name="Design",
    )


@pytest.fixture
def plan_file(tmp_path: Path) -> Path:
    """A small plan written to a temporary YAML file."""
    path = tmp_path / "plan.yaml"
    path.write_text(PLAN_YAML, encoding="utf-8")
    return path
