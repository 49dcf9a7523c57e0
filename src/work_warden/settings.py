"""Persisted user settings: daily targets and the last seen calendar date."""

from __future__ import annotations

import datetime as dt
import logging
from datetime import timedelta
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_serializer

logger = logging.getLogger(__name__)


class Settings(BaseModel):
    current_date: dt.date
    work_target: timedelta = timedelta(hours=8)
    lunch_target: timedelta = timedelta(hours=1)
    break_target: timedelta = timedelta(minutes=30)

    model_config = ConfigDict(extra="forbid")

    @field_serializer("work_target", "lunch_target", "break_target")
    def _serialize_seconds(self, value: timedelta) -> float:
        return value.total_seconds()


def save_settings(settings: Settings, path: Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    Path(path).write_text(settings.model_dump_json(indent=2), encoding="utf-8")


def load_or_create_settings(path: Path, today: dt.date) -> Settings:
    """Load settings from ``path``, writing defaults first if it is missing."""
    path = Path(path)
    if not path.exists():
        settings = Settings(current_date=today)
        save_settings(settings, path)
        logger.info("Created default settings at %s", path)
        return settings
    try:
        return Settings.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as exc:
        raise ValueError(f"Invalid settings file {path}: {exc}") from exc
