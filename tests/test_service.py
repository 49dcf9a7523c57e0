import threading
from datetime import timedelta

import pytest

from work_warden.models import Active, ClockIn, ClockType, Idle, TaskID, Tasks
from work_warden.notifications import NotificationKind, Notifier
from work_warden.paths import get_logs_dir, get_settings_path
from work_warden.service import TimecardService
from work_warden.settings import Settings, load_or_create_settings, save_settings
from work_warden.storage import LogFormatError, load_event_log, save_event_log
from work_warden.timecard import EventLog, log_file_for_date


class RecordingPresenter:
    def __init__(self) -> None:
        self.shown: list[tuple[NotificationKind, str]] = []
        self.closed: list[NotificationKind] = []

    def show(self, kind, summary, body):
        self.shown.append((kind, body))

    def close(self, kind):
        self.closed.append(kind)


@pytest.fixture
def presenter():
    return RecordingPresenter()


@pytest.fixture
def service(tmp_path, clock, presenter):
    return TimecardService.open(tmp_path, clock=clock, notifier=Notifier(presenter))


def _saved(service):
    return load_event_log(service.get_current_timecard().path)


def test_open_starts_active_log_for_today(service, tmp_path, at, day):
    timecard = service.get_current_timecard()

    assert timecard.date == day
    assert timecard.path == log_file_for_date(tmp_path / "logs", day)
    assert timecard.events == [Active(time=at(9))]
    assert timecard.current_state.active_until == at(9)
    assert _saved(service).events == timecard.events
    assert service.settings.current_date == day


def test_open_reuses_existing_log(tmp_path, clock, at):
    first = TimecardService.open(tmp_path, clock=clock)
    first.clock_in(ClockType.DAY)
    clock.advance(minutes=2)

    second = TimecardService.open(tmp_path, clock=clock)

    assert second.get_current_timecard().events == [
        ClockIn(time=at(9), clock=ClockType.DAY),
        Active(time=at(9)),
    ]
    assert second.get_current_timecard().current_state.active_until == at(9, 2)


def test_open_after_long_absence_records_idle(tmp_path, clock, at):
    TimecardService.open(tmp_path, clock=clock).clock_in(ClockType.DAY)
    clock.advance(hours=1)

    reopened = TimecardService.open(tmp_path, clock=clock)
    events = reopened.get_current_timecard().events

    assert Idle(time=at(9)) in events
    assert events[-1] == Active(time=at(10))
    assert reopened.elapsed().idle_work_time == timedelta(hours=1)


def test_open_carries_forward_last_day(tmp_path, clock, at, day):
    TimecardService.open(tmp_path, clock=clock).clock_in(ClockType.DAY)
    yesterday_file = log_file_for_date(get_logs_dir(tmp_path), day)
    clock.advance(days=1)

    reopened = TimecardService.open(tmp_path, clock=clock)
    timecard = reopened.get_current_timecard()

    assert timecard.date == day + timedelta(days=1)
    assert timecard.initial_state.working.since == at(9)
    assert Idle(time=at(9)) in load_event_log(yesterday_file).events
    assert reopened.settings.current_date == day + timedelta(days=1)


def test_open_fails_on_corrupt_log(tmp_path, clock, day):
    path = log_file_for_date(get_logs_dir(tmp_path), day)
    path.write_text("garbage", encoding="utf-8")

    with pytest.raises(LogFormatError):
        TimecardService.open(tmp_path, clock=clock)


def test_commands_persist_and_notify_observers(service, clock, at):
    received = []
    service.subscribe(received.append)

    clock.advance(minutes=1)
    service.clock_in(ClockType.DAY)
    clock.advance(minutes=1)
    service.set_tasks([2, 1])
    clock.advance(hours=1)
    snapshot = service.clock_out(ClockType.DAY)

    assert len(received) == 3
    assert received[-1].events == snapshot.events
    assert _saved(service).events == snapshot.events
    assert Tasks(time=at(9, 2), tasks=frozenset({TaskID(1), TaskID(2)})) in snapshot.events
    assert snapshot.current_state.working.accumulated == timedelta(hours=1, minutes=1)


def test_unsubscribed_observer_is_not_called(service):
    received = []
    unsubscribe = service.subscribe(received.append)
    unsubscribe()

    service.clock_in(ClockType.DAY)

    assert received == []


def test_failing_observer_does_not_break_command(service):
    def broken(_snapshot):
        raise RuntimeError("boom")

    service.subscribe(broken)

    snapshot = service.clock_in(ClockType.DAY)

    assert snapshot.current_state.working.active()


def test_save_failure_surfaces_os_error(service, monkeypatch):
    def fail(_log):
        raise PermissionError("read-only disk")

    monkeypatch.setattr("work_warden.service.save_event_log", fail)

    with pytest.raises(PermissionError):
        service.clock_in(ClockType.DAY)
    assert service.get_current_timecard().current_state.working.active()


class TestIdleCallbacks:
    def test_idle_then_active_records_idle_work(self, service, clock):
        service.clock_in(ClockType.DAY)
        clock.advance(minutes=30)
        service.refresh_heartbeat()
        service.on_idle_change(True)
        clock.advance(minutes=20)
        service.on_idle_change(False)

        timecard = service.get_current_timecard()
        assert timecard.current_state.idle_work.accumulated == timedelta(minutes=20)
        assert timecard.current_state.active_until == clock.now
        assert _saved(service).current_state == timecard.current_state

    def test_repeated_idle_adds_one_event(self, service, clock):
        service.on_idle_change(True)
        clock.advance(minutes=1)
        service.on_idle_change(True)

        events = service.get_current_timecard().events
        assert sum(isinstance(event, Idle) for event in events) == 1

    def test_idle_after_stale_heartbeat_is_backdated(self, service, clock, at):
        clock.advance(minutes=30)
        service.on_idle_change(True)

        events = service.get_current_timecard().events
        assert events[-1] == Idle(time=at(9))


class TestHeartbeat:
    def test_refresh_moves_marker_without_events(self, service, clock):
        clock.advance(minutes=1)
        service.refresh_heartbeat()

        timecard = service.get_current_timecard()
        assert len(timecard.events) == 1
        assert timecard.current_state.active_until == clock.now
        assert _saved(service).current_state.active_until == clock.now

    def test_gap_becomes_idle_and_user_is_renewed(self, service, clock, at):
        service.clock_in(ClockType.DAY)
        clock.advance(hours=2)

        elapsed = service.refresh_heartbeat()

        events = service.get_current_timecard().events
        assert events[-2:] == [Idle(time=at(9)), Active(time=at(11))]
        assert elapsed.idle_work_time == timedelta(hours=2)
        assert not elapsed.idle_working

    def test_gap_while_user_idle_stays_idle(self, service, clock):
        service.on_idle_change(True)
        clock.advance(hours=2)

        service.refresh_heartbeat()

        assert service.get_current_timecard().current_state.active_until is None

    def test_overtime_notification(self, tmp_path, clock, presenter, day):
        settings_path = get_settings_path(tmp_path)
        save_settings(Settings(current_date=day, work_target=timedelta(hours=1)), settings_path)
        service = TimecardService.open(tmp_path, clock=clock, notifier=Notifier(presenter))
        service.clock_in(ClockType.DAY)

        clock.advance(minutes=50)
        service.refresh_heartbeat()
        assert presenter.shown == []

        clock.advance(minutes=15)
        service.refresh_heartbeat()
        assert presenter.shown == [(NotificationKind.OVERTIME, "5m overtime worked today")]

        service.clock_out(ClockType.DAY)
        service.refresh_heartbeat()
        assert presenter.closed == [NotificationKind.OVERTIME]


class TestRollover:
    def test_same_day_is_noop(self, service):
        assert service.refresh_date() is False

    def test_new_day_carries_open_span(self, service, clock, tmp_path, at, day):
        service.clock_in(ClockType.DAY)
        old_path = service.get_current_timecard().path
        clock.now = at(0, 0, 30, days=1)

        assert service.refresh_date() is True

        timecard = service.get_current_timecard()
        next_day = day + timedelta(days=1)
        assert timecard.date == next_day
        assert timecard.path == log_file_for_date(get_logs_dir(tmp_path), next_day)
        assert timecard.initial_state.working.since == at(9)
        assert timecard.initial_state.working.accumulated == timedelta(0)
        assert load_event_log(timecard.path).initial_state == timecard.initial_state
        assert load_event_log(old_path).date == day
        assert load_or_create_settings(get_settings_path(tmp_path), day).current_date == next_day
        assert service.elapsed().work_time == timedelta(seconds=30)

    def test_rollover_after_gap_renews_presence(self, service, clock, at):
        service.clock_in(ClockType.DAY)
        old_path = service.get_current_timecard().path
        clock.now = at(8, days=1)

        service.refresh_date()

        old_events = load_event_log(old_path).events
        assert old_events[-1] == Idle(time=at(9))
        timecard = service.get_current_timecard()
        assert timecard.events == [Active(time=at(8, days=1))]
        assert timecard.current_state.active_until == at(8, days=1)

    def test_rollover_refreshes_live_heartbeat(self, service, clock, at):
        clock.now = at(23, 58)
        service.refresh_heartbeat()
        clock.now = at(0, 0, 5, days=1)

        service.refresh_date()

        timecard = service.get_current_timecard()
        assert timecard.events == []
        assert timecard.current_state.active_until == at(0, 0, 5, days=1)


def test_readers_wait_for_writer(service, monkeypatch):
    entered = threading.Event()
    release = threading.Event()
    real_save = save_event_log

    def slow_save(log):
        entered.set()
        release.wait(5)
        real_save(log)

    monkeypatch.setattr("work_warden.service.save_event_log", slow_save)
    writer = threading.Thread(target=service.clock_in, args=(ClockType.DAY,))
    writer.start()
    assert entered.wait(5)

    seen = []
    reader = threading.Thread(target=lambda: seen.append(service.get_current_timecard()))
    reader.start()
    reader.join(0.2)
    assert seen == []

    release.set()
    writer.join(5)
    reader.join(5)
    assert seen[0].current_state.working.active()
