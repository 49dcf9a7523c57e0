"""Configuration models and helpers for the timecard service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(slots=True)
class HeartbeatSettings:
    """Runtime configuration for the heartbeat loop and idle watcher."""

    heartbeat_interval: timedelta = timedelta(seconds=60)
    idle_threshold: timedelta = timedelta(minutes=5)
    idle_poll_interval: timedelta = timedelta(seconds=5)

    @classmethod
    def from_intervals(
        cls,
        heartbeat_seconds: float,
        idle_minutes: float,
        poll_seconds: float | None = None,
    ) -> "HeartbeatSettings":
        poll = poll_seconds if poll_seconds is not None else min(heartbeat_seconds, 5.0)
        return cls(
            heartbeat_interval=timedelta(seconds=heartbeat_seconds),
            idle_threshold=timedelta(minutes=idle_minutes),
            idle_poll_interval=timedelta(seconds=poll),
        )
