"""Helpers for locating application directories."""

from __future__ import annotations

from pathlib import Path

from platformdirs import PlatformDirs


APP_NAME = "WorkWarden"
APP_AUTHOR = "WorkWarden"


def get_data_dir() -> Path:
    """Return the base directory for persistent data."""
    dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=True)
    path = Path(dirs.user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_logs_dir(data_dir: Path | None = None) -> Path:
    path = Path(data_dir or get_data_dir()) / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_tasks_dir(data_dir: Path | None = None) -> Path:
    path = Path(data_dir or get_data_dir()) / "tasks"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_settings_path(data_dir: Path | None = None) -> Path:
    return Path(data_dir or get_data_dir()) / "config.json"
