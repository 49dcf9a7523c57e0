"""Domain models for the timecard: duration trackers, day state and events."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from enum import Enum
from functools import total_ordering
from typing import Dict, FrozenSet, Generic, Hashable, NewType, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

TaskID = NewType("TaskID", int)

K = TypeVar("K", bound=Hashable)

ZERO = timedelta(0)


def local_now() -> datetime:
    """Current local time with its fixed UTC offset attached."""
    return datetime.now().astimezone()


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return local midnight of ``day`` and of the following day."""
    start = datetime.combine(day, time.min).astimezone()
    end = datetime.combine(day + timedelta(days=1), time.min).astimezone()
    return start, end


def _interval(start: datetime, end: datetime) -> timedelta:
    length = end - start
    if length < ZERO:
        logger.warning(
            "Interval ends before it starts (%s -> %s); counting it as zero.",
            start.isoformat(),
            end.isoformat(),
        )
        return ZERO
    return length


@dataclass(slots=True)
class TrackedTime:
    """Accumulated time for one category plus the start of its open span."""

    since: Optional[datetime] = None
    accumulated: timedelta = ZERO

    def start_at(self, when: datetime) -> None:
        if self.since is None:
            self.since = when

    def end_at(self, when: datetime) -> None:
        if self.since is None:
            return
        self.accumulated += _interval(self.since, when)
        self.since = None

    def active(self) -> bool:
        return self.since is not None

    def elapsed_for_date(self, day: date, now: Optional[datetime] = None) -> timedelta:
        """Accumulated time plus the part of the open span that falls on ``day``."""
        if self.since is None:
            return self.accumulated
        day_start, day_end = day_bounds(day)
        start = max(self.since, day_start)
        end = min(now or local_now(), day_end)
        if end <= start:
            return self.accumulated
        return self.accumulated + (end - start)


@dataclass(slots=True)
class TrackedMultiTime(Generic[K]):
    """Shared clock over a set of keys.

    Elapsed time is split evenly across the active keys whenever the clock
    stops, so ``accumulated`` is always authoritative for closed spans.
    ``paused`` records an explicit pause (break, lunch or clocking out) even
    when the clock was not running at the time.
    """

    since: Optional[datetime] = None
    ids: FrozenSet[K] = frozenset()
    accumulated: Dict[K, timedelta] = field(default_factory=dict)
    paused: bool = False

    def active(self) -> bool:
        return self.since is not None

    def _close(self, when: datetime) -> bool:
        if self.since is None:
            return False
        if self.ids:
            share = _interval(self.since, when) / len(self.ids)
            for key in self.ids:
                self.accumulated[key] = self.accumulated.get(key, ZERO) + share
        self.since = None
        return True

    def pause(self, when: datetime) -> bool:
        self.paused = True
        return self._close(when)

    def resume(self, when: datetime) -> bool:
        self.paused = False
        if self.since is not None:
            return False
        self.since = when
        return True

    def clear_pause(self) -> None:
        """Let the next key change start the clock without starting it now."""
        self.paused = False

    def set_tracked(self, when: datetime, ids: FrozenSet[K]) -> None:
        """Replace the active keys, keeping a paused clock paused.

        A clock that was never paused starts with its first keys.
        """
        was_active = self._close(when)
        self.ids = frozenset(ids)
        if was_active or (self.ids and not self.paused):
            self.since = when


@dataclass(slots=True)
class State:
    working: TrackedTime = field(default_factory=TrackedTime)
    on_break: TrackedTime = field(default_factory=TrackedTime)
    on_lunch: TrackedTime = field(default_factory=TrackedTime)
    idle_work: TrackedTime = field(default_factory=TrackedTime)
    tasks: TrackedMultiTime[TaskID] = field(default_factory=TrackedMultiTime)
    # Last instant the user was confirmed present; not a duration.
    active_until: Optional[datetime] = None

    def copy(self) -> "State":
        return State(
            working=replace(self.working),
            on_break=replace(self.on_break),
            on_lunch=replace(self.on_lunch),
            idle_work=replace(self.idle_work),
            tasks=TrackedMultiTime(
                since=self.tasks.since,
                ids=self.tasks.ids,
                accumulated=dict(self.tasks.accumulated),
                paused=self.tasks.paused,
            ),
            active_until=self.active_until,
        )

    def reset_accumulations(self) -> None:
        """Zero the per-category totals, keeping any open spans running."""
        for tracked in (self.working, self.on_break, self.on_lunch, self.idle_work):
            tracked.accumulated = ZERO


class ClockType(Enum):
    DAY = "Day"
    BREAK = "Break"
    LUNCH = "Lunch"

    @property
    def ordinal(self) -> int:
        return _CLOCK_ORDER[self]

    @classmethod
    def parse(cls, value: str) -> "ClockType":
        for clock in cls:
            if clock.value.lower() == value.strip().lower():
                return clock
        raise ValueError(f"Unknown clock type: {value!r}")


_CLOCK_ORDER = {ClockType.DAY: 0, ClockType.BREAK: 1, ClockType.LUNCH: 2}


@total_ordering
class _OrderedEvent:
    """Total order shared by every event variant."""

    rank: int = -1

    def sort_key(self) -> tuple:
        return (self.time, self.rank, self._tie_break())  # type: ignore[attr-defined]

    def _tie_break(self) -> tuple:
        return ()

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, _OrderedEvent):
            return NotImplemented
        return self.sort_key() < other.sort_key()


@dataclass(frozen=True, eq=True)
class ClockIn(_OrderedEvent):
    time: datetime
    clock: ClockType

    rank = 0

    def _tie_break(self) -> tuple:
        return (self.clock.ordinal,)


@dataclass(frozen=True, eq=True)
class ClockOut(_OrderedEvent):
    time: datetime
    clock: ClockType

    rank = 1

    def _tie_break(self) -> tuple:
        return (self.clock.ordinal,)


@dataclass(frozen=True, eq=True)
class Active(_OrderedEvent):
    time: datetime

    rank = 2


@dataclass(frozen=True, eq=True)
class Idle(_OrderedEvent):
    time: datetime

    rank = 3


@dataclass(frozen=True, eq=True)
class Tasks(_OrderedEvent):
    time: datetime
    tasks: FrozenSet[TaskID] = frozenset()

    rank = 4

    def _tie_break(self) -> tuple:
        return tuple(sorted(self.tasks))


Event = Union[ClockIn, ClockOut, Active, Idle, Tasks]
