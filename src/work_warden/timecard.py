"""Event log for one calendar day and the reducer that folds events into state."""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Iterable, Optional

from .models import (
    Active,
    ClockIn,
    ClockOut,
    ClockType,
    Event,
    Idle,
    State,
    Tasks,
    local_now,
)

logger = logging.getLogger(__name__)

IDLE_STALE_THRESHOLD = timedelta(minutes=5)


@dataclass(slots=True, frozen=True)
class Elapsed:
    """Time spent per category on the log's date, and what is running now."""

    work_time: timedelta
    break_time: timedelta
    lunch_time: timedelta
    idle_work_time: timedelta
    working: bool
    on_break: bool
    on_lunch: bool
    idle_working: bool


def apply_event(state: State, event: Event) -> None:
    """Apply ``event`` to ``state`` in place."""
    when = event.time
    if isinstance(event, ClockIn):
        if event.clock is ClockType.DAY:
            state.working.start_at(when)
            if state.active_until is None:
                state.idle_work.start_at(when)
            if not (state.on_break.active() or state.on_lunch.active()):
                state.tasks.clear_pause()
        elif event.clock is ClockType.BREAK:
            state.on_break.start_at(when)
            state.working.start_at(when)
            state.on_lunch.end_at(when)
            state.idle_work.end_at(when)
            state.tasks.pause(when)
        else:
            state.on_lunch.start_at(when)
            state.working.start_at(when)
            state.on_break.end_at(when)
            state.idle_work.end_at(when)
            state.tasks.pause(when)
    elif isinstance(event, ClockOut):
        if event.clock is ClockType.DAY:
            state.working.end_at(when)
            state.on_break.end_at(when)
            state.on_lunch.end_at(when)
            state.idle_work.end_at(when)
            state.tasks.pause(when)
        elif event.clock is ClockType.BREAK:
            state.on_break.end_at(when)
            state.tasks.resume(when)
        else:
            state.on_lunch.end_at(when)
            state.tasks.resume(when)
    elif isinstance(event, Active):
        state.active_until = when
        state.idle_work.end_at(when)
    elif isinstance(event, Idle):
        state.active_until = None
        if state.working.active() and not (
            state.on_break.active() or state.on_lunch.active()
        ):
            state.idle_work.start_at(when)
    elif isinstance(event, Tasks):
        state.tasks.set_tracked(when, event.tasks)
    else:
        raise TypeError(f"Unsupported event: {event!r}")


def replay(initial_state: State, events: Iterable[Event]) -> State:
    state = initial_state.copy()
    for event in events:
        apply_event(state, event)
    return state


class EventLog:
    """Ordered events of one day together with the state they produce.

    ``current_state`` is a cache of ``initial_state`` folded through
    ``events``; it only changes through :meth:`add_event` and the heartbeat
    helpers.
    """

    def __init__(
        self,
        path: Path,
        day: date,
        initial_state: Optional[State] = None,
        events: Iterable[Event] = (),
        current_state: Optional[State] = None,
    ) -> None:
        self.path = Path(path)
        self.date = day
        self.initial_state = initial_state.copy() if initial_state else State()
        self.events: list[Event] = sorted(set(events))
        if current_state is None:
            current_state = replay(self.initial_state, self.events)
        self.current_state = current_state

    def add_event(self, event: Event) -> bool:
        """Fold ``event`` into the current state and record it.

        Returns False when an identical event is already recorded.
        """
        index = bisect.bisect_left(self.events, event)
        if index < len(self.events) and self.events[index] == event:
            return False
        self.events.insert(index, event)
        if index == len(self.events) - 1:
            apply_event(self.current_state, event)
        else:
            logger.debug("Out-of-order event at %s; replaying log.", event.time)
            heartbeat = self.current_state.active_until
            state = replay(self.initial_state, self.events)
            # Heartbeat refreshes are not events, so keep the latest one.
            if state.active_until is not None and heartbeat is not None:
                state.active_until = max(state.active_until, heartbeat)
            self.current_state = state
        return True

    def infer_idle(self, now: Optional[datetime] = None) -> bool:
        """Turn a stale heartbeat into an idle period starting where it stopped."""
        active_until = self.current_state.active_until
        if active_until is None:
            return False
        now = now or local_now()
        if now - active_until <= IDLE_STALE_THRESHOLD:
            return False
        logger.info("No heartbeat since %s; recording idle.", active_until.isoformat())
        self.add_event(Idle(time=active_until))
        self.current_state.active_until = None
        return True

    def force_active(self, now: Optional[datetime] = None) -> None:
        now = now or local_now()
        if self.current_state.active_until is None:
            self.add_event(Active(time=now))
        self.current_state.active_until = now

    def refresh_active(self, now: Optional[datetime] = None) -> bool:
        """Advance the heartbeat marker of an ongoing active span."""
        if self.current_state.active_until is None:
            return False
        self.current_state.active_until = now or local_now()
        return True

    def elapsed(self, now: Optional[datetime] = None) -> Elapsed:
        now = now or local_now()
        state = self.current_state
        return Elapsed(
            work_time=state.working.elapsed_for_date(self.date, now),
            break_time=state.on_break.elapsed_for_date(self.date, now),
            lunch_time=state.on_lunch.elapsed_for_date(self.date, now),
            idle_work_time=state.idle_work.elapsed_for_date(self.date, now),
            working=state.working.active(),
            on_break=state.on_break.active(),
            on_lunch=state.on_lunch.active(),
            idle_working=state.idle_work.active(),
        )

    def rollover(self, path: Path, day: date) -> "EventLog":
        """Start the log for ``day`` from this log's open spans."""
        state = self.current_state.copy()
        state.reset_accumulations()
        return EventLog(path, day, initial_state=state)

    def snapshot(self) -> "EventLog":
        return EventLog(
            self.path,
            self.date,
            initial_state=self.initial_state,
            events=self.events,
            current_state=self.current_state.copy(),
        )


def log_file_for_date(logs_dir: Path, day: date) -> Path:
    return Path(logs_dir) / f"{day.year}-{day.month}-{day.day}.log.json"
