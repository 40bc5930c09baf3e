"""Tick schedulers driving the highlight state machine.

The only contract is that ticks fire much more often than words are
spoken and never overlap. ``stop()`` is idempotent and, once it returns,
no further callback runs.
"""

import logging
import threading
from typing import Callable, Optional

from ..config import MAX_POLL_INTERVAL, POLL_INTERVAL
from ..exceptions import ConfigError

logger = logging.getLogger(__name__)

TickCallback = Callable[[], None]


class Scheduler:
    """Interface shared by all schedulers."""

    def start(self, callback: TickCallback) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError

    @property
    def running(self) -> bool:
        raise NotImplementedError


class ManualScheduler(Scheduler):
    """Caller-driven scheduler: each :meth:`fire` runs one tick."""

    def __init__(self):
        self._callback: Optional[TickCallback] = None
        self.ticks = 0

    def start(self, callback: TickCallback) -> None:
        self._callback = callback

    def stop(self) -> None:
        self._callback = None

    @property
    def running(self) -> bool:
        return self._callback is not None

    def fire(self, times: int = 1) -> int:
        """Run up to ``times`` ticks; returns how many actually ran."""
        ran = 0
        for _ in range(times):
            callback = self._callback
            if callback is None:
                break
            callback()
            self.ticks += 1
            ran += 1
        return ran


class IntervalScheduler(Scheduler):
    """Background daemon thread ticking at a fixed interval."""

    def __init__(self, interval: float = POLL_INTERVAL, name: str = "readalong-ticker"):
        if not 0 < interval <= MAX_POLL_INTERVAL:
            raise ConfigError(
                f"Tick interval must be in (0, {MAX_POLL_INTERVAL}] seconds"
            )
        self.interval = interval
        self.name = name
        self._lock = threading.RLock()
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self._callback: Optional[TickCallback] = None

    @property
    def running(self) -> bool:
        # Read without the lock; callers may hold a lock a running tick waits on
        return self._callback is not None

    def start(self, callback: TickCallback) -> None:
        self.stop()
        with self._lock:
            self._callback = callback
            stop_event = threading.Event()
            self._stop_event = stop_event
            self._thread = threading.Thread(
                target=self._run, args=(stop_event,), name=self.name, daemon=True
            )
            self._thread.start()

    def stop(self) -> None:
        with self._lock:
            thread = self._thread
            if self._stop_event is not None:
                self._stop_event.set()
            self._callback = None
            self._stop_event = None
            self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.interval * 4)

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval):
            with self._lock:
                # Checked under the lock so stop() returning means no more ticks
                if stop_event.is_set() or self._callback is None:
                    break
                try:
                    self._callback()
                except Exception:
                    logger.exception("Highlight tick failed")
