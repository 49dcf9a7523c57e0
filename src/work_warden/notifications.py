"""Threshold notifications for overtime and long breaks or lunches."""

from __future__ import annotations

import logging
import threading
from datetime import timedelta
from enum import Enum
from typing import Callable, Optional, Protocol

from .settings import Settings
from .timecard import Elapsed

logger = logging.getLogger(__name__)


class NotificationKind(Enum):
    OVERTIME = "overtime"
    LONG_LUNCH = "long_lunch"
    LONG_BREAK = "long_break"


def format_duration_minutes(value: timedelta) -> str:
    """Compact minute resolution rendering such as ``1d2h30m``."""
    minutes = int(value.total_seconds()) // 60
    if minutes <= 0:
        return "0m"
    out = ""
    for unit, size in (("w", 60 * 24 * 7), ("d", 60 * 24), ("h", 60)):
        if minutes >= size:
            out += f"{minutes // size}{unit}"
            minutes %= size
    if minutes:
        out += f"{minutes}m"
    return out


_RENDERERS: dict[NotificationKind, Callable[[timedelta], tuple[str, str]]] = {
    NotificationKind.OVERTIME: lambda over: (
        "Working overtime",
        f"{format_duration_minutes(over)} overtime worked today",
    ),
    NotificationKind.LONG_LUNCH: lambda over: (
        "Long lunch",
        f"Over by {format_duration_minutes(over)} for lunch today",
    ),
    NotificationKind.LONG_BREAK: lambda over: (
        "Over break time",
        f"Over by {format_duration_minutes(over)} for break time today",
    ),
}


class NotificationPresenter(Protocol):
    def show(self, kind: NotificationKind, summary: str, body: str) -> None: ...

    def close(self, kind: NotificationKind) -> None: ...


class LogPresenter:
    """Presents notifications as log records."""

    def show(self, kind: NotificationKind, summary: str, body: str) -> None:
        logger.info("[%s] %s: %s", kind.value, summary, body)

    def close(self, kind: NotificationKind) -> None:
        logger.info("[%s] cleared", kind.value)


class Notifier:
    """Keeps at most one resident notification per kind."""

    def __init__(self, presenter: Optional[NotificationPresenter] = None) -> None:
        self.presenter = presenter or LogPresenter()
        self._lock = threading.Lock()
        self._shown: dict[NotificationKind, timedelta] = {}

    def is_shown(self, kind: NotificationKind) -> bool:
        with self._lock:
            return kind in self._shown

    def show(self, kind: NotificationKind, over: timedelta) -> None:
        """Show or refresh the notification with the current overage."""
        with self._lock:
            self._shown[kind] = over
            summary, body = _RENDERERS[kind](over)
            self.presenter.show(kind, summary, body)

    def clear(self, kind: NotificationKind) -> None:
        with self._lock:
            if self._shown.pop(kind, None) is not None:
                self.presenter.close(kind)

    def update(self, elapsed: Elapsed, settings: Settings) -> None:
        """Show or clear each notification against the configured targets."""
        checks = (
            (NotificationKind.OVERTIME, elapsed.working, elapsed.work_time, settings.work_target),
            (NotificationKind.LONG_LUNCH, elapsed.on_lunch, elapsed.lunch_time, settings.lunch_target),
            (NotificationKind.LONG_BREAK, elapsed.on_break, elapsed.break_time, settings.break_target),
        )
        for kind, running, spent, target in checks:
            over = spent - target
            if running and over > timedelta(0):
                self.show(kind, over)
            else:
                self.clear(kind)
