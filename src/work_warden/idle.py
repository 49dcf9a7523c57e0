"""User idle detection delivered as change callbacks."""

from __future__ import annotations

import ctypes
import logging
import sys
import threading
from datetime import timedelta
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class IdleProbe(Protocol):
    def milliseconds_since_input(self) -> int: ...


class WindowsIdleProbe:
    """Reads the time since the last keyboard or mouse input via Win32 APIs."""

    def __init__(self) -> None:
        from ctypes import wintypes

        class LASTINPUTINFO(ctypes.Structure):
            _fields_ = [("cbSize", wintypes.UINT), ("dwTime", wintypes.DWORD)]

        self._info_type = LASTINPUTINFO
        self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]
        self._kernel32 = ctypes.windll.kernel32  # type: ignore[attr-defined]
        self._kernel32.GetTickCount64.restype = ctypes.c_ulonglong

    def milliseconds_since_input(self) -> int:
        last_input = self._info_type()
        last_input.cbSize = ctypes.sizeof(last_input)
        if not self._user32.GetLastInputInfo(ctypes.byref(last_input)):
            raise ctypes.WinError()  # type: ignore[attr-defined]
        # dwTime wraps with the 32-bit tick counter.
        elapsed = (self._kernel32.GetTickCount64() & 0xFFFFFFFF) - last_input.dwTime
        return int(elapsed) & 0xFFFFFFFF


def create_idle_probe() -> Optional[IdleProbe]:
    if sys.platform == "win32":
        return WindowsIdleProbe()
    logger.info("Idle detection is not available on %s; assuming present.", sys.platform)
    return None


class IdleWatcher:
    """Polls a probe and reports idle/active transitions from its own thread."""

    def __init__(
        self,
        probe: IdleProbe,
        on_change: Callable[[bool], None],
        *,
        threshold: timedelta = timedelta(minutes=5),
        poll_interval: timedelta = timedelta(seconds=5),
    ) -> None:
        self._probe = probe
        self._on_change = on_change
        self._threshold_ms = int(threshold.total_seconds() * 1000)
        self._poll_interval = poll_interval.total_seconds()
        self._idle = False
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    @property
    def idle(self) -> bool:
        return self._idle

    def poll_once(self) -> None:
        try:
            idle = self._probe.milliseconds_since_input() >= self._threshold_ms
        except OSError:
            logger.exception("Failed to query idle state; assuming not idle.")
            idle = False
        if idle == self._idle:
            return
        self._idle = idle
        logger.debug("User is now %s.", "idle" if idle else "active")
        self._on_change(idle)

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_loop, args=(stop_event,), name="idle-watcher", daemon=True
            )
            self._thread = thread
            self._stop_event = stop_event
            thread.start()

    def stop(self) -> None:
        with self._lock:
            thread, stop_event = self._thread, self._stop_event
            self._thread = None
            self._stop_event = None
        if stop_event and thread:
            stop_event.set()
            thread.join(timeout=10)

    def _run_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            try:
                self.poll_once()
            except Exception:
                logger.exception("Idle callback failed.")
            stop_event.wait(self._poll_interval)
