"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from .models import TaskID
from .timecard import EventLog


class SummaryPrinter:
    """Render human-readable timecard summaries in the console."""

    def print_daily_summary(self, log: EventLog, now: Optional[datetime] = None) -> None:
        elapsed = log.elapsed(now)
        if not log.events and not elapsed.working:
            print("No activity recorded for the selected day.")
            return

        print(f"Summary for {log.date.strftime('%Y-%m-%d')}")
        print("-" * 40)
        rows = (
            ("Work time:", elapsed.work_time, elapsed.working),
            ("Break time:", elapsed.break_time, elapsed.on_break),
            ("Lunch time:", elapsed.lunch_time, elapsed.on_lunch),
            ("Idle work:", elapsed.idle_work_time, elapsed.idle_working),
        )
        for label, value, running in rows:
            marker = "  (running)" if running else ""
            print(f"{label:<12} {format_duration(value.total_seconds())}{marker}")

        tasks = log.current_state.tasks
        if tasks.ids:
            state = "active" if tasks.active() else "paused"
            ids = ", ".join(str(task_id) for task_id in sorted(tasks.ids))
            print()
            print(f"Current tasks ({state}): {ids}")

        top_tasks = aggregate_tasks(tasks.accumulated)
        if top_tasks:
            print()
            print("Time per task:")
            for task_id, value in top_tasks[:5]:
                print(f"  #{task_id:<10} {format_compact(value)}")


def aggregate_tasks(accumulated: dict[TaskID, timedelta]) -> list[tuple[TaskID, timedelta]]:
    return sorted(accumulated.items(), key=lambda item: item[1], reverse=True)


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


_UNITS = (
    ("w", 7 * 24 * 3600),
    ("d", 24 * 3600),
    ("h", 3600),
    ("m", 60),
    ("s", 1),
)


def format_compact(value: timedelta) -> str:
    """Render as ``1w2d3h4m5s``, dropping zero units."""
    remaining = int(value.total_seconds())
    if remaining <= 0:
        return "0s"
    out = ""
    for unit, size in _UNITS:
        if remaining >= size:
            out += f"{remaining // size}{unit}"
            remaining %= size
    return out
