"""JSON persistence for daily event logs."""

from __future__ import annotations

import datetime as dt
import logging
from datetime import timedelta
from pathlib import Path
from typing import Annotated, Literal, Optional, Union

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, ValidationError

from .models import (
    Active,
    ClockIn,
    ClockOut,
    ClockType,
    Event,
    Idle,
    State,
    TaskID,
    Tasks,
    TrackedMultiTime,
    TrackedTime,
)
from .timecard import EventLog

logger = logging.getLogger(__name__)


class LogFormatError(ValueError):
    """A persisted log exists but cannot be understood."""

    def __init__(self, path: Path, detail: str) -> None:
        super().__init__(f"Corrupt event log {path}: {detail}")
        self.path = path


ClockName = Literal["Day", "Break", "Lunch"]


class TrackedTimeRecord(BaseModel):
    since: Optional[AwareDatetime] = None
    accumulated: float = 0.0

    model_config = ConfigDict(extra="forbid")


class TrackedTasksRecord(BaseModel):
    since: Optional[AwareDatetime] = None
    ids: list[int] = Field(default_factory=list)
    accumulated: dict[int, float] = Field(default_factory=dict)
    paused: bool = False

    model_config = ConfigDict(extra="forbid")


class StateRecord(BaseModel):
    working: TrackedTimeRecord = Field(default_factory=TrackedTimeRecord)
    on_break: TrackedTimeRecord = Field(default_factory=TrackedTimeRecord, alias="onBreak")
    on_lunch: TrackedTimeRecord = Field(default_factory=TrackedTimeRecord, alias="onLunch")
    idle_work: TrackedTimeRecord = Field(default_factory=TrackedTimeRecord, alias="idleWork")
    tasks: TrackedTasksRecord = Field(default_factory=TrackedTasksRecord)
    active_until: Optional[AwareDatetime] = Field(default=None, alias="activeUntil")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class ClockInRecord(BaseModel):
    type: Literal["ClockIn"] = "ClockIn"
    time: AwareDatetime
    clock: ClockName

    model_config = ConfigDict(extra="forbid")


class ClockOutRecord(BaseModel):
    type: Literal["ClockOut"] = "ClockOut"
    time: AwareDatetime
    clock: ClockName

    model_config = ConfigDict(extra="forbid")


class ActiveRecord(BaseModel):
    type: Literal["Active"] = "Active"
    time: AwareDatetime

    model_config = ConfigDict(extra="forbid")


class IdleRecord(BaseModel):
    type: Literal["Idle"] = "Idle"
    time: AwareDatetime

    model_config = ConfigDict(extra="forbid")


class TasksRecord(BaseModel):
    type: Literal["Tasks"] = "Tasks"
    time: AwareDatetime
    tasks: list[int] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


EventRecord = Annotated[
    Union[ClockInRecord, ClockOutRecord, ActiveRecord, IdleRecord, TasksRecord],
    Field(discriminator="type"),
]


class LogRecord(BaseModel):
    day: dt.date = Field(alias="date")
    initial_state: StateRecord = Field(alias="initialState")
    current_state: StateRecord = Field(alias="currentState")
    events: list[EventRecord] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


def _seconds(value: timedelta) -> float:
    return value.total_seconds()


def _tracked_to_record(tracked: TrackedTime) -> TrackedTimeRecord:
    return TrackedTimeRecord(since=tracked.since, accumulated=_seconds(tracked.accumulated))


def _tracked_from_record(record: TrackedTimeRecord) -> TrackedTime:
    return TrackedTime(since=record.since, accumulated=timedelta(seconds=record.accumulated))


def state_to_record(state: State) -> StateRecord:
    return StateRecord(
        working=_tracked_to_record(state.working),
        on_break=_tracked_to_record(state.on_break),
        on_lunch=_tracked_to_record(state.on_lunch),
        idle_work=_tracked_to_record(state.idle_work),
        tasks=TrackedTasksRecord(
            since=state.tasks.since,
            ids=sorted(state.tasks.ids),
            accumulated={
                int(key): _seconds(value)
                for key, value in sorted(state.tasks.accumulated.items())
            },
            paused=state.tasks.paused,
        ),
        active_until=state.active_until,
    )


def state_from_record(record: StateRecord) -> State:
    return State(
        working=_tracked_from_record(record.working),
        on_break=_tracked_from_record(record.on_break),
        on_lunch=_tracked_from_record(record.on_lunch),
        idle_work=_tracked_from_record(record.idle_work),
        tasks=TrackedMultiTime(
            since=record.tasks.since,
            ids=frozenset(TaskID(task_id) for task_id in record.tasks.ids),
            accumulated={
                TaskID(key): timedelta(seconds=value)
                for key, value in record.tasks.accumulated.items()
            },
            paused=record.tasks.paused,
        ),
        active_until=record.active_until,
    )


def event_to_record(event: Event):
    if isinstance(event, ClockIn):
        return ClockInRecord(time=event.time, clock=event.clock.value)
    if isinstance(event, ClockOut):
        return ClockOutRecord(time=event.time, clock=event.clock.value)
    if isinstance(event, Active):
        return ActiveRecord(time=event.time)
    if isinstance(event, Idle):
        return IdleRecord(time=event.time)
    if isinstance(event, Tasks):
        return TasksRecord(time=event.time, tasks=sorted(event.tasks))
    raise TypeError(f"Unsupported event: {event!r}")


def event_from_record(record) -> Event:
    if isinstance(record, ClockInRecord):
        return ClockIn(time=record.time, clock=ClockType(record.clock))
    if isinstance(record, ClockOutRecord):
        return ClockOut(time=record.time, clock=ClockType(record.clock))
    if isinstance(record, ActiveRecord):
        return Active(time=record.time)
    if isinstance(record, IdleRecord):
        return Idle(time=record.time)
    if isinstance(record, TasksRecord):
        return Tasks(time=record.time, tasks=frozenset(TaskID(i) for i in record.tasks))
    raise TypeError(f"Unsupported event record: {record!r}")


def log_to_record(log: EventLog) -> LogRecord:
    return LogRecord(
        day=log.date,
        initial_state=state_to_record(log.initial_state),
        current_state=state_to_record(log.current_state),
        events=[event_to_record(event) for event in log.events],
    )


def log_to_payload(log: EventLog) -> dict:
    """JSON-compatible dict of the log, as written to disk."""
    return log_to_record(log).model_dump(mode="json", by_alias=True)


def save_event_log(log: EventLog) -> None:
    """Write the log to its backing file, replacing previous contents."""
    payload = log_to_record(log).model_dump_json(by_alias=True, indent=2)
    log.path.parent.mkdir(parents=True, exist_ok=True)
    log.path.write_text(payload, encoding="utf-8")
    logger.debug("Saved %d events to %s", len(log.events), log.path)


def load_event_log(path: Path) -> EventLog:
    """Read a log written by :func:`save_event_log`.

    ``OSError`` propagates unchanged; unreadable contents raise
    :class:`LogFormatError`.
    """
    path = Path(path)
    raw = path.read_text(encoding="utf-8")
    try:
        record = LogRecord.model_validate_json(raw)
    except ValidationError as exc:
        raise LogFormatError(path, str(exc)) from exc
    return EventLog(
        path,
        record.day,
        initial_state=state_from_record(record.initial_state),
        events=[event_from_record(item) for item in record.events],
        current_state=state_from_record(record.current_state),
    )
