"""Background thread that keeps the timecard's date and heartbeat current."""

from __future__ import annotations

import logging
import threading
import time
from datetime import timedelta
from typing import Optional

from .service import TimecardService

logger = logging.getLogger(__name__)


class HeartbeatRunner:
    """Run the periodic rollover and heartbeat cycle in a background thread."""

    def __init__(
        self,
        service: TimecardService,
        interval: timedelta = timedelta(seconds=60),
    ) -> None:
        self._service = service
        self._interval = interval.total_seconds()
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_loop,
                args=(stop_event,),
                name="timecard-heartbeat",
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event
            thread.start()
            logger.info("Heartbeat thread started.")

    def stop(self) -> None:
        thread: Optional[threading.Thread] = None
        with self._lock:
            if not self._thread or not self._thread.is_alive() or not self._stop_event:
                return
            self._stop_event.set()
            thread = self._thread
            self._thread = None
            self._stop_event = None
        if thread:
            thread.join(timeout=10)
            logger.info("Heartbeat thread stopped.")

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())

    def run_cycle(self) -> None:
        """One tick: date rollover first, then heartbeat and notifications."""
        try:
            self._service.refresh_date()
        except Exception:
            logger.exception("Error updating current date.")
        try:
            self._service.refresh_heartbeat()
        except Exception:
            logger.exception("Error refreshing heartbeat.")

    def _run_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            started = time.monotonic()
            self.run_cycle()
            remaining = self._interval - (time.monotonic() - started)
            stop_event.wait(max(remaining, 0.0))
