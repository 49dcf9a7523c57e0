"""The process-wide timecard: commands, idle callbacks, heartbeat and rollover."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Optional

from .locks import ReadWriteLock
from .models import ClockIn, ClockOut, ClockType, Idle, TaskID, Tasks, local_now
from .notifications import Notifier
from .paths import get_logs_dir, get_settings_path
from .settings import Settings, load_or_create_settings, save_settings
from .storage import load_event_log, save_event_log
from .timecard import Elapsed, EventLog, log_file_for_date

logger = logging.getLogger(__name__)

Observer = Callable[[EventLog], None]


class TimecardService:
    """Owns the current :class:`EventLog` behind a reader/writer lock.

    Every mutation applies its event, writes the log and notifies observers
    while holding the writer lock, so a snapshot handed out always matches
    what was saved.
    """

    def __init__(
        self,
        logs_dir: Path,
        settings_path: Path,
        event_log: EventLog,
        settings: Settings,
        *,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self.logs_dir = Path(logs_dir)
        self.settings_path = Path(settings_path)
        self.notifier = notifier or Notifier()
        self._log = event_log
        self._settings = settings
        self._clock = clock
        self._lock = ReadWriteLock()
        self._observers: list[Observer] = []
        self._user_idle = False

    @classmethod
    def open(
        cls,
        data_dir: Optional[Path] = None,
        *,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = local_now,
    ) -> "TimecardService":
        """Load or start today's log and mark the user present.

        A log from the last day the app ran is carried forward when today's
        file does not exist yet. Corrupt logs raise ``LogFormatError``.
        """
        logs_dir = get_logs_dir(data_dir)
        settings_path = get_settings_path(data_dir)
        now = clock()
        today = now.date()
        settings = load_or_create_settings(settings_path, today)

        path = log_file_for_date(logs_dir, today)
        previous_path = log_file_for_date(logs_dir, settings.current_date)
        if path.exists():
            event_log = load_event_log(path)
        elif settings.current_date < today and previous_path.exists():
            previous = load_event_log(previous_path)
            if previous.infer_idle(now):
                save_event_log(previous)
            logger.info("Carrying %s forward to %s", settings.current_date, today)
            event_log = previous.rollover(path, today)
        else:
            event_log = EventLog(path, today)

        event_log.infer_idle(now)
        event_log.force_active(now)
        save_event_log(event_log)
        if settings.current_date != today:
            settings.current_date = today
            save_settings(settings, settings_path)

        return cls(
            logs_dir,
            settings_path,
            event_log,
            settings,
            notifier=notifier,
            clock=clock,
        )

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register ``observer`` for new snapshots; returns an unsubscribe callable."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    @property
    def settings(self) -> Settings:
        with self._lock.read_locked():
            return self._settings.model_copy()

    def get_current_timecard(self) -> EventLog:
        with self._lock.read_locked():
            return self._log.snapshot()

    def elapsed(self) -> Elapsed:
        with self._lock.read_locked():
            return self._log.elapsed(self._clock())

    def clock_in(self, clock: ClockType) -> EventLog:
        with self._lock.write_locked():
            self._log.add_event(ClockIn(time=self._clock(), clock=clock))
            return self._commit()

    def clock_out(self, clock: ClockType) -> EventLog:
        with self._lock.write_locked():
            self._log.add_event(ClockOut(time=self._clock(), clock=clock))
            return self._commit()

    def set_tasks(self, task_ids: Iterable[int]) -> EventLog:
        tasks = frozenset(TaskID(int(task_id)) for task_id in task_ids)
        with self._lock.write_locked():
            self._log.add_event(Tasks(time=self._clock(), tasks=tasks))
            return self._commit()

    def on_idle_change(self, is_idle: bool) -> None:
        """Idle detector callback; may run on any thread."""
        with self._lock.write_locked():
            now = self._clock()
            self._user_idle = is_idle
            changed = self._log.infer_idle(now)
            if is_idle:
                if self._log.current_state.active_until is not None:
                    self._log.add_event(Idle(time=now))
                    changed = True
            else:
                self._log.force_active(now)
                changed = True
            if changed:
                self._commit()

    def refresh_date(self, renew: bool = True) -> bool:
        """Switch to a new log when the local calendar day has changed."""
        with self._lock.write_locked():
            now = self._clock()
            today = now.date()
            if self._settings.current_date == today:
                return False

            outgoing = self._log
            injected = outgoing.infer_idle(now)
            if injected:
                save_event_log(outgoing)

            event_log = outgoing.rollover(log_file_for_date(self.logs_dir, today), today)
            save_event_log(event_log)
            self._log = event_log
            logger.info("Rolled event log over from %s to %s", outgoing.date, today)

            self._settings.current_date = today
            save_settings(self._settings, self.settings_path)

            if renew and injected and not self._user_idle:
                event_log.force_active(now)
            else:
                event_log.refresh_active(now)
            self._commit()
            return True

    def refresh_heartbeat(self) -> Elapsed:
        """Re-stamp the heartbeat and update notifications."""
        with self._lock.write_locked():
            now = self._clock()
            changed = self._log.infer_idle(now)
            if changed and not self._user_idle:
                self._log.force_active(now)
            elif self._log.refresh_active(now):
                changed = True
            if changed:
                self._commit()
            elapsed = self._log.elapsed(now)
            settings = self._settings.model_copy()
        self.notifier.update(elapsed, settings)
        return elapsed

    def _commit(self) -> EventLog:
        save_event_log(self._log)
        snapshot = self._log.snapshot()
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception:
                logger.exception("Timecard observer %r failed.", observer)
        return snapshot
