"""Command-line interface for the timecard."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer

from .config import HeartbeatSettings
from .models import ClockType
from .paths import get_logs_dir, get_tasks_dir
from .storage import LogFormatError

app = typer.Typer(help="Work day timecard with idle tracking.")
task_app = typer.Typer(help="Manage task metadata.", no_args_is_help=True)
app.add_typer(task_app, name="task")

DATA_DIR_OPTION = typer.Option(
    None,
    "--data-dir",
    path_type=Path,
    help="Directory holding logs, tasks and settings.",
)


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _open_service(data_dir: Optional[Path]):
    from .service import TimecardService

    try:
        return TimecardService.open(data_dir)
    except LogFormatError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    except OSError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _parse_clock(value: str) -> ClockType:
    try:
        return ClockType.parse(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _run_command(data_dir: Optional[Path], action) -> None:
    from .reporting import SummaryPrinter

    service = _open_service(data_dir)
    try:
        event_log = action(service)
    except OSError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    SummaryPrinter().print_daily_summary(event_log)


@app.command("clock-in")
def clock_in(
    clock: str = typer.Argument("day", help="day, break or lunch."),
    data_dir: Optional[Path] = DATA_DIR_OPTION,
) -> None:
    """Clock in to the day, a break or lunch."""
    clock_type = _parse_clock(clock)
    _run_command(data_dir, lambda service: service.clock_in(clock_type))


@app.command("clock-out")
def clock_out(
    clock: str = typer.Argument("day", help="day, break or lunch."),
    data_dir: Optional[Path] = DATA_DIR_OPTION,
) -> None:
    """Clock out of the day, a break or lunch."""
    clock_type = _parse_clock(clock)
    _run_command(data_dir, lambda service: service.clock_out(clock_type))


@app.command("set-tasks")
def set_tasks(
    task_ids: Optional[List[int]] = typer.Argument(None, help="Task ids to work on."),
    data_dir: Optional[Path] = DATA_DIR_OPTION,
) -> None:
    """Replace the set of tasks being worked on (no ids clears it)."""
    ids = task_ids or []
    if any(task_id <= 0 for task_id in ids):
        raise typer.BadParameter("task ids must be positive")
    _run_command(data_dir, lambda service: service.set_tasks(ids))


@app.command()
def status(
    date: Optional[str] = typer.Option(
        None,
        "--date",
        help="Date (YYYY-MM-DD) to summarize. Defaults to today.",
    ),
    data_dir: Optional[Path] = DATA_DIR_OPTION,
) -> None:
    """Print the elapsed summary for a day without changing it."""
    from .reporting import SummaryPrinter
    from .storage import load_event_log
    from .timecard import log_file_for_date

    try:
        target = datetime.strptime(date, "%Y-%m-%d").date() if date else datetime.now().date()
    except ValueError as exc:
        raise typer.BadParameter("date must be YYYY-MM-DD") from exc

    path = log_file_for_date(get_logs_dir(data_dir), target)
    if not path.exists():
        typer.echo("No activity recorded for the selected day.")
        return
    try:
        event_log = load_event_log(path)
    except LogFormatError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    SummaryPrinter().print_daily_summary(event_log)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the dashboard."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the dashboard."
    ),
    data_dir: Optional[Path] = DATA_DIR_OPTION,
    heartbeat_seconds: float = typer.Option(
        60.0,
        "--heartbeat",
        min=5.0,
        help="Seconds between heartbeat cycles.",
    ),
    idle_minutes: float = typer.Option(
        5.0,
        "--idle-threshold",
        min=0.5,
        help="Minutes without input before the user counts as idle.",
    ),
    open_browser: bool = typer.Option(
        True,
        "--open-browser/--no-open-browser",
        help="Automatically open the API docs in your default browser.",
    ),
) -> None:
    """Start the timecard service with its HTTP API."""
    from .server_runner import run_dashboard

    settings = HeartbeatSettings.from_intervals(
        heartbeat_seconds=heartbeat_seconds, idle_minutes=idle_minutes
    )
    try:
        run_dashboard(
            host=host,
            port=port,
            data_dir=data_dir,
            settings=settings,
            open_browser=open_browser,
        )
    except LogFormatError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=2) from exc


@task_app.command("new")
def task_new(
    title: str = typer.Argument(..., help="Short task title."),
    description: str = typer.Option("", "--description", "-d"),
    story_type: str = typer.Option("feature", "--type", help="feature, bug or chore."),
    starred: bool = typer.Option(False, "--starred"),
    data_dir: Optional[Path] = DATA_DIR_OPTION,
) -> None:
    """Create a task and add it to the recents list."""
    from .tasks import StoryType, TaskStore

    try:
        kind = StoryType(story_type.lower())
    except ValueError as exc:
        raise typer.BadParameter("type must be feature, bug or chore") from exc
    task = TaskStore(get_tasks_dir(data_dir)).create_task(
        title, description=description, story_type=kind, starred=starred
    )
    typer.echo(f"Created task #{task.id}: {task.title}")


@task_app.command("show")
def task_show(task_id: int, data_dir: Optional[Path] = DATA_DIR_OPTION) -> None:
    """Print a task as JSON."""
    from .tasks import TaskStore

    try:
        task = TaskStore(get_tasks_dir(data_dir)).load_task(task_id)
    except KeyError as exc:
        typer.echo(f"No task with id {task_id}.", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(task.model_dump_json(by_alias=True, indent=2))


@task_app.command("recents")
def task_recents(data_dir: Optional[Path] = DATA_DIR_OPTION) -> None:
    """List starred and recently used tasks."""
    from .tasks import TaskStore

    recents = TaskStore(get_tasks_dir(data_dir)).get_recents()
    typer.echo("Starred: " + (", ".join(f"#{i}" for i in recents.starred) or "-"))
    typer.echo("Recent:  " + (", ".join(f"#{i}" for i in recents.other) or "-"))


@task_app.command("archive")
def task_archive(task_id: int, data_dir: Optional[Path] = DATA_DIR_OPTION) -> None:
    """Remove a task from the recents list."""
    from .tasks import TaskStore

    TaskStore(get_tasks_dir(data_dir)).archive(task_id)
    typer.echo(f"Archived task #{task_id}.")
