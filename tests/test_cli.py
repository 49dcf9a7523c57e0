from datetime import datetime

from typer.testing import CliRunner

from work_warden.cli import app
from work_warden.paths import get_logs_dir
from work_warden.storage import load_event_log
from work_warden.timecard import log_file_for_date

runner = CliRunner()


def _today_log(tmp_path):
    return load_event_log(log_file_for_date(get_logs_dir(tmp_path), datetime.now().date()))


def test_clock_in_and_status(tmp_path):
    result = runner.invoke(app, ["clock-in", "day", "--data-dir", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "Work time:" in result.output
    assert _today_log(tmp_path).current_state.working.active()

    status = runner.invoke(app, ["status", "--data-dir", str(tmp_path)])
    assert status.exit_code == 0
    assert "(running)" in status.output


def test_clock_out_break_and_tasks(tmp_path):
    runner.invoke(app, ["clock-in", "break", "--data-dir", str(tmp_path)])
    runner.invoke(app, ["clock-out", "break", "--data-dir", str(tmp_path)])
    result = runner.invoke(app, ["set-tasks", "4", "5", "--data-dir", str(tmp_path)])

    assert result.exit_code == 0, result.output
    state = _today_log(tmp_path).current_state
    assert not state.on_break.active()
    assert state.working.active()
    assert state.tasks.ids == frozenset({4, 5})
    assert "Current tasks" in result.output


def test_bad_clock_is_usage_error(tmp_path):
    result = runner.invoke(app, ["clock-in", "nap", "--data-dir", str(tmp_path)])

    assert result.exit_code == 2


def test_status_for_day_without_log(tmp_path):
    result = runner.invoke(app, ["status", "--date", "2020-01-02", "--data-dir", str(tmp_path)])

    assert result.exit_code == 0
    assert "No activity recorded" in result.output


def test_corrupt_log_is_fatal(tmp_path):
    path = log_file_for_date(get_logs_dir(tmp_path), datetime.now().date())
    path.write_text("{", encoding="utf-8")

    result = runner.invoke(app, ["clock-in", "--data-dir", str(tmp_path)])

    assert result.exit_code == 2
    assert "Corrupt event log" in result.output


def test_task_commands(tmp_path):
    created = runner.invoke(app, ["task", "new", "Review PR", "--type", "chore", "--starred", "--data-dir", str(tmp_path)])
    assert created.exit_code == 0, created.output
    assert "Created task #1" in created.output

    shown = runner.invoke(app, ["task", "show", "1", "--data-dir", str(tmp_path)])
    assert '"storyType": "chore"' in shown.output

    recents = runner.invoke(app, ["task", "recents", "--data-dir", str(tmp_path)])
    assert "Starred: #1" in recents.output

    runner.invoke(app, ["task", "archive", "1", "--data-dir", str(tmp_path)])
    recents = runner.invoke(app, ["task", "recents", "--data-dir", str(tmp_path)])
    assert "Starred: -" in recents.output

    missing = runner.invoke(app, ["task", "show", "9", "--data-dir", str(tmp_path)])
    assert missing.exit_code == 1
