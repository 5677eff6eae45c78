"""Tests for unified configuration loading."""

from datetime import time
from pathlib import Path
from tempfile import NamedTemporaryFile

import pytest
from pydantic import ValidationError as PydanticValidationError

from planline.unified_config import UnifiedConfig, load_unified_config


def write_config(content: str) -> Path:
    with NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        f.write(content)
        return Path(f.name)


def test_load_unified_config_full():
    """Test loading a config with engine settings and a custom working week."""
    config_path = write_config(
        """
engine:
  recurrence:
    continuous_horizon_days: 90
  estimates:
    hour_precision: 1
    events_consume_budget: false
  layout:
    min_gap_days: 2
  drag:
    day_width_px: 30
    write_through: false

default_weekly_hours:
  monday:
    - start: "08:00"
      end: "12:00"
    - start: "13:00"
      end: "17:00"
  tuesday:
    - start: "08:00"
      end: "12:00"
"""
    )

    try:
        unified = load_unified_config(config_path)

        assert unified.engine.recurrence.continuous_horizon_days == 90
        assert unified.engine.recurrence.max_occurrences == 1000
        assert unified.engine.estimates.hour_precision == 1
        assert not unified.engine.estimates.events_consume_budget
        assert unified.engine.layout.min_gap_days == 2
        assert unified.engine.drag.day_width_px == 30
        assert not unified.engine.drag.write_through

        assert set(unified.default_weekly_hours) == {"monday", "tuesday"}
        monday = unified.default_weekly_hours["monday"]
        assert [(slot.start, slot.end) for slot in monday] == [
            (time(8, 0), time(12, 0)),
            (time(13, 0), time(17, 0)),
        ]
    finally:
        config_path.unlink()


def test_load_unified_config_defaults():
    """Test that missing sections fall back to defaults."""
    config_path = write_config("engine: {}\n")

    try:
        unified = load_unified_config(config_path)
        assert unified.engine.drag.persist_interval_ms == 50
        assert unified.engine.drag.weeks_persist_interval_ms == 100
        assert len(unified.default_weekly_hours) == 5
    finally:
        config_path.unlink()


def test_unquoted_times_are_accepted():
    """YAML reads unquoted 17:00 as a number; it still parses as a time."""
    config_path = write_config(
        """
default_weekly_hours:
  friday:
    - start: 9:30
      end: 17:00
"""
    )

    try:
        unified = load_unified_config(config_path)
        friday = unified.default_weekly_hours["friday"][0]
        assert friday.start == time(9, 30)
        assert friday.end == time(17, 0)
    finally:
        config_path.unlink()


def test_default_config():
    unified = UnifiedConfig()
    assert unified.engine.recurrence.continuous_horizon_days == 365
    assert sorted(unified.default_weekly_hours) == [
        "friday",
        "monday",
        "thursday",
        "tuesday",
        "wednesday",
    ]


def test_missing_file():
    with pytest.raises(FileNotFoundError):
        load_unified_config(Path("/nonexistent/planline_config.yaml"))


def test_empty_file():
    config_path = write_config("")
    try:
        with pytest.raises(ValueError, match="Empty configuration file"):
            load_unified_config(config_path)
    finally:
        config_path.unlink()


def test_unknown_section():
    config_path = write_config("engine: {}\njira:\n  base_url: x\n")
    try:
        with pytest.raises(ValueError, match="Unknown configuration sections: jira"):
            load_unified_config(config_path)
    finally:
        config_path.unlink()


def test_invalid_values():
    config_path = write_config("engine:\n  layout:\n    min_gap_days: 0\n")
    try:
        with pytest.raises(PydanticValidationError):
            load_unified_config(config_path)
    finally:
        config_path.unlink()


def test_invalid_weekday_name():
    config_path = write_config(
        'default_weekly_hours:\n  funday:\n    - {start: "09:00", end: "17:00"}\n'
    )
    try:
        with pytest.raises(PydanticValidationError):
            load_unified_config(config_path)
    finally:
        config_path.unlink()
