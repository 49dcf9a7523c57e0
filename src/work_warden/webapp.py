"""FastAPI application that exposes the timecard and task store over HTTP."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from .config import HeartbeatSettings
from .heartbeat import HeartbeatRunner
from .idle import IdleProbe, IdleWatcher, create_idle_probe
from .models import ClockType
from .paths import get_tasks_dir
from .service import TimecardService
from .storage import log_to_payload
from .tasks import StoryType, Task, TaskStore
from .timecard import Elapsed, EventLog

logger = logging.getLogger(__name__)


class ActiveTasksPayload(BaseModel):
    tasks: list[int]

    model_config = ConfigDict(extra="forbid")


class TaskPayload(BaseModel):
    title: str
    description: str = ""
    story_type: StoryType = StoryType.FEATURE
    shortcut_id: Optional[int] = None
    starred: bool = False

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    data_dir: Optional[Path] = None,
    settings: Optional[HeartbeatSettings] = None,
    service: Optional[TimecardService] = None,
    idle_probe_factory: Callable[[], Optional[IdleProbe]] = create_idle_probe,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_settings = settings or HeartbeatSettings()
    timecard = service or TimecardService.open(data_dir)
    task_store = TaskStore(get_tasks_dir(data_dir))
    runner = HeartbeatRunner(timecard, resolved_settings.heartbeat_interval)

    app = FastAPI(title="Work Warden", version="0.3.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.timecard = timecard
    app.state.task_store = task_store
    app.state.heartbeat_runner = runner
    app.state.idle_watcher = None

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        runner.start()
        probe = idle_probe_factory()
        if probe is not None:
            watcher = IdleWatcher(
                probe,
                timecard.on_idle_change,
                threshold=resolved_settings.idle_threshold,
                poll_interval=resolved_settings.idle_poll_interval,
            )
            watcher.start()
            app.state.idle_watcher = watcher

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        if app.state.idle_watcher is not None:
            app.state.idle_watcher.stop()
        runner.stop()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        current = request.app.state.timecard.get_current_timecard()
        return {
            "heartbeat_running": request.app.state.heartbeat_runner.is_running(),
            "idle_detection": request.app.state.idle_watcher is not None,
            "logs_dir": str(request.app.state.timecard.logs_dir),
            "date": current.date.isoformat(),
            "heartbeat_seconds": resolved_settings.heartbeat_interval.total_seconds(),
        }

    @app.get("/api/timecard")
    def timecard_endpoint(request: Request) -> Dict[str, Any]:
        return log_to_payload(request.app.state.timecard.get_current_timecard())

    @app.get("/api/elapsed")
    def elapsed_endpoint(request: Request) -> Dict[str, Any]:
        return _elapsed_payload(request.app.state.timecard.elapsed())

    @app.post("/api/clock-in/{clock}")
    def clock_in(clock: str, request: Request) -> Dict[str, Any]:
        clock_type = _parse_clock(clock)
        return _mutate(lambda: request.app.state.timecard.clock_in(clock_type))

    @app.post("/api/clock-out/{clock}")
    def clock_out(clock: str, request: Request) -> Dict[str, Any]:
        clock_type = _parse_clock(clock)
        return _mutate(lambda: request.app.state.timecard.clock_out(clock_type))

    @app.put("/api/active-tasks")
    def set_active_tasks(payload: ActiveTasksPayload, request: Request) -> Dict[str, Any]:
        if any(task_id <= 0 for task_id in payload.tasks):
            raise HTTPException(status_code=400, detail="task ids must be positive")
        return _mutate(lambda: request.app.state.timecard.set_tasks(payload.tasks))

    @app.get("/api/recents")
    def recents(request: Request) -> Dict[str, Any]:
        return request.app.state.task_store.get_recents().model_dump()

    @app.post("/api/tasks")
    def create_task(payload: TaskPayload, request: Request) -> Dict[str, Any]:
        title = payload.title.strip()
        if not title:
            raise HTTPException(status_code=400, detail="title is required")
        try:
            task = request.app.state.task_store.create_task(
                title,
                description=payload.description,
                story_type=payload.story_type,
                shortcut_id=payload.shortcut_id,
                starred=payload.starred,
            )
        except OSError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return task.model_dump(by_alias=True)

    @app.get("/api/tasks/{task_id}")
    def get_task(task_id: int, request: Request) -> Dict[str, Any]:
        return _load_task(request.app.state.task_store, task_id).model_dump(by_alias=True)

    @app.put("/api/tasks/{task_id}")
    def update_task(task_id: int, payload: TaskPayload, request: Request) -> Dict[str, Any]:
        store: TaskStore = request.app.state.task_store
        _load_task(store, task_id)
        task = Task(id=task_id, **payload.model_dump())
        store.save_task(task)
        store.make_recent(task_id, task.starred)
        return task.model_dump(by_alias=True)

    @app.post("/api/tasks/{task_id}/archive")
    def archive_task(task_id: int, request: Request) -> Dict[str, Any]:
        store: TaskStore = request.app.state.task_store
        _load_task(store, task_id)
        store.archive(task_id)
        return store.get_recents().model_dump()

    return app


def _parse_clock(value: str) -> ClockType:
    try:
        return ClockType.parse(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _mutate(command: Callable[[], EventLog]) -> Dict[str, Any]:
    try:
        event_log = command()
    except OSError as exc:
        logger.exception("Failed to persist timecard.")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return log_to_payload(event_log)


def _load_task(store: TaskStore, task_id: int) -> Task:
    try:
        return store.load_task(task_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Task not found") from exc


def _elapsed_payload(elapsed: Elapsed) -> Dict[str, Any]:
    return {
        "work_seconds": elapsed.work_time.total_seconds(),
        "break_seconds": elapsed.break_time.total_seconds(),
        "lunch_seconds": elapsed.lunch_time.total_seconds(),
        "idle_work_seconds": elapsed.idle_work_time.total_seconds(),
        "working": elapsed.working,
        "on_break": elapsed.on_break,
        "on_lunch": elapsed.on_lunch,
        "idle_working": elapsed.idle_working,
    }
