"""Audio playback clock interface and a simulated implementation.

The engine never decodes or plays audio itself; it only needs a clock that
reports the playback position and announces transport events.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

TimeCallback = Callable[[float], None]


class AudioClock:
    """Playback clock consumed by the engine."""

    def get_current_time(self) -> float:
        raise NotImplementedError

    def get_duration(self) -> float:
        raise NotImplementedError

    def seek(self, time: float) -> None:
        raise NotImplementedError

    def pause(self) -> None:
        raise NotImplementedError

    def on_play(self, callback: Optional[TimeCallback]) -> None:
        raise NotImplementedError

    def on_pause(self, callback: Optional[TimeCallback]) -> None:
        raise NotImplementedError

    def on_end(self, callback: Optional[TimeCallback]) -> None:
        raise NotImplementedError

    def on_seek(self, callback: Optional[TimeCallback]) -> None:
        raise NotImplementedError


class SimulatedClock(AudioClock):
    """Clock advanced explicitly by the caller; used by the CLI and tests."""

    def __init__(self, duration: float):
        self.duration = max(0.0, float(duration))
        self.current_time = 0.0
        self.is_playing = False
        self._lock = threading.RLock()
        self._on_play: Optional[TimeCallback] = None
        self._on_pause: Optional[TimeCallback] = None
        self._on_end: Optional[TimeCallback] = None
        self._on_seek: Optional[TimeCallback] = None

    # Event callback setters
    def on_play(self, callback: Optional[TimeCallback]) -> None:
        self._on_play = callback

    def on_pause(self, callback: Optional[TimeCallback]) -> None:
        self._on_pause = callback

    def on_end(self, callback: Optional[TimeCallback]) -> None:
        self._on_end = callback

    def on_seek(self, callback: Optional[TimeCallback]) -> None:
        self._on_seek = callback

    def get_current_time(self) -> float:
        with self._lock:
            return self.current_time

    def get_duration(self) -> float:
        return self.duration

    def play(self) -> None:
        with self._lock:
            if self.is_playing:
                return
            self.is_playing = True
            now = self.current_time
        logger.info("Playback started at %.3fs", now)
        if self._on_play:
            self._on_play(now)

    def pause(self) -> None:
        with self._lock:
            if not self.is_playing:
                return
            self.is_playing = False
            now = self.current_time
        logger.info("Playback paused at %.3fs", now)
        if self._on_pause:
            self._on_pause(now)

    def seek(self, time: float) -> None:
        with self._lock:
            self.current_time = min(max(0.0, float(time)), self.duration)
            now = self.current_time
        logger.info("Playback seeked to %.3fs", now)
        if self._on_seek:
            self._on_seek(now)

    def advance(self, seconds: float) -> float:
        """Move the playhead forward while playing; fires the end event at the end."""
        ended = False
        with self._lock:
            if not self.is_playing:
                return self.current_time
            self.current_time = min(self.current_time + seconds, self.duration)
            if self.current_time >= self.duration:
                self.is_playing = False
                ended = True
            now = self.current_time
        if ended:
            logger.info("Playback ended at %.3fs", now)
            if self._on_end:
                self._on_end(now)
        return now
