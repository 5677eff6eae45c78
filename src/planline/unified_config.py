"""Unified configuration loader.

A single configuration file (planline_config.yaml) holds the engine settings
and the default working week used by plans without their own.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from .engine.config import EngineConfig
from .schemas import SettingsSchema, TimeSlotSchema

CONFIG_FILE_NAME = "planline_config.yaml"


def _standard_week() -> dict[str, list[TimeSlotSchema]]:
    slot = TimeSlotSchema.model_validate({"start": "09:00", "end": "17:00"})
    return {day: [slot] for day in ("monday", "tuesday", "wednesday", "thursday", "friday")}


class UnifiedConfig(BaseModel):
    """Unified configuration: engine settings plus the default working week."""

    engine: EngineConfig = EngineConfig()
    default_weekly_hours: dict[str, list[TimeSlotSchema]] = Field(default_factory=_standard_week)


def load_unified_config(config_path: Path | str) -> UnifiedConfig:
    """Load unified configuration from YAML file.

    Args:
        config_path: Path to planline_config.yaml file

    Returns:
        UnifiedConfig with defaults for every missing section

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is empty or invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open(encoding="utf-8") as f:
        data: dict[str, Any] = yaml.safe_load(f)

    if not data:
        raise ValueError("Empty configuration file")
    if not isinstance(data, dict):
        raise ValueError("Configuration must be a mapping at the root level")

    unknown = set(data) - {"engine", "default_weekly_hours"}
    if unknown:
        raise ValueError(f"Unknown configuration sections: {', '.join(sorted(unknown))}")

    engine_config = EngineConfig.model_validate(data.get("engine") or {})

    weekly_hours = _standard_week()
    if "default_weekly_hours" in data:
        # Reuse the plan settings validation for weekday names and slot order
        settings = SettingsSchema.model_validate(
            {"weekly_work_hours": data["default_weekly_hours"]}
        )
        weekly_hours = settings.weekly_work_hours or {}

    return UnifiedConfig(engine=engine_config, default_weekly_hours=weekly_hours)
