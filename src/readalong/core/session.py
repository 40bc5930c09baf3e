"""Composition of one document/audio pairing and multi-page handoff.

``ReadAlongSession`` wires a playback clock to a highlight state machine
and a paragraph seeker. ``SessionManager`` owns several sessions (one per
page) and makes sure only one of them is ever tracking.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from ..config import AlignmentSettings
from ..exceptions import ReadAlongError
from .clock import AudioClock
from .highlighter import HighlightStateMachine
from .models import EngineState, SeekResult, TextToken, TimedWord
from .paragraph_seeker import ParagraphSeeker
from .scheduler import IntervalScheduler, Scheduler
from .tokenizer import RenderedDocument
from .transcript import load_transcript_file

logger = logging.getLogger(__name__)

FollowCallback = Callable[[TextToken], None]


class ReadAlongFollower:
    """Keeps the reader's view on the word being spoken.

    Receives word-highlighted notifications from whichever highlighter it is
    bound to and forwards them to follow callbacks (e.g. a scroller) while
    auto-follow is on and the user is not scrolling.
    """

    def __init__(self):
        self.auto_enabled = True
        self.user_scrolling = False
        self.current_token: Optional[TextToken] = None
        self.highlighter: Optional[HighlightStateMachine] = None
        self._callbacks: List[FollowCallback] = []

    def add_callback(self, callback: FollowCallback) -> None:
        self._callbacks.append(callback)

    def bind(self, highlighter: Optional[HighlightStateMachine]) -> None:
        """Follow ``highlighter`` instead of the previously bound one."""
        if highlighter is self.highlighter:
            return
        if self.highlighter is not None:
            self.highlighter.remove_listener(self.on_word_highlighted)
        self.highlighter = highlighter
        self.current_token = highlighter.current_token if highlighter else None
        if highlighter is not None:
            highlighter.add_listener(self.on_word_highlighted)
        logger.debug("Read-along follower rebound")

    def on_word_highlighted(self, token: TextToken) -> None:
        self.current_token = token
        if not self.auto_enabled or self.user_scrolling:
            return
        for callback in list(self._callbacks):
            callback(token)

    def set_auto_enabled(self, enabled: bool) -> None:
        if self.auto_enabled == enabled:
            return
        self.auto_enabled = enabled
        logger.info("Auto-follow %s", "on" if enabled else "off")
        # Jump straight to the current word when re-enabled
        if enabled and self.current_token is not None and not self.user_scrolling:
            for callback in list(self._callbacks):
                callback(self.current_token)

    def toggle_auto(self) -> bool:
        self.set_auto_enabled(not self.auto_enabled)
        return self.auto_enabled


class ReadAlongSession:
    """One document bound to one audio clock and transcript."""

    def __init__(
        self,
        document: RenderedDocument,
        timed_words: Sequence[TimedWord],
        clock: AudioClock,
        settings: Optional[AlignmentSettings] = None,
        scheduler: Optional[Scheduler] = None,
        disable_word_highlighting: bool = False,
    ):
        self.settings = (settings or AlignmentSettings()).validate()
        self.document = document
        if not document.tokens:
            document.tokenize()
        self.timed_words = list(timed_words)
        self.clock = clock
        self.disable_word_highlighting = disable_word_highlighting

        if scheduler is None:
            scheduler = IntervalScheduler(self.settings.poll_interval)
        self.highlighter = HighlightStateMachine(
            document, self.timed_words, settings=self.settings, scheduler=scheduler
        )
        self.seeker = ParagraphSeeker(
            document, self.timed_words, clock=clock, settings=self.settings
        )
        self._connect_clock()

    @classmethod
    def from_files(
        cls,
        document_path: Union[str, Path],
        transcript_path: Union[str, Path],
        clock: AudioClock,
        offset_ms: float = 0,
        container_selector: Optional[str] = None,
        **kwargs,
    ) -> "ReadAlongSession":
        """Build a session from an HTML file and a transcript JSON file."""
        try:
            markup = Path(document_path).read_text(encoding="utf-8")
        except OSError as e:
            raise ReadAlongError(f"Cannot read document {document_path}: {e}") from e
        document = RenderedDocument(markup, container_selector=container_selector)
        document.tokenize()
        timed_words = load_transcript_file(transcript_path, offset_ms=offset_ms)
        return cls(document, timed_words, clock, **kwargs)

    # ----------------------
    # Clock wiring
    # ----------------------
    def _connect_clock(self) -> None:
        self.clock.on_play(self._on_play)
        self.clock.on_pause(self._on_pause)
        self.clock.on_end(self._on_end)
        self.clock.on_seek(self._on_seek)

    def _on_play(self, _time: float) -> None:
        if self.disable_word_highlighting:
            painted = self.document.highlight_all()
            logger.debug("Word highlighting disabled; painted %d tokens", painted)
            return
        self.highlighter.start(self.clock.get_current_time, self.clock.get_duration)

    def _on_pause(self, _time: float) -> None:
        self.highlighter.pause()

    def _on_end(self, _time: float) -> None:
        self.highlighter.pause()
        if not self.disable_word_highlighting:
            self.highlighter.handle_audio_end(self.clock.get_duration())

    def _on_seek(self, time: float) -> None:
        if not self.disable_word_highlighting:
            self.highlighter.handle_seek(time)

    # ----------------------
    # Public API
    # ----------------------
    @property
    def state(self) -> EngineState:
        return self.highlighter.state

    def pause(self) -> None:
        self.clock.pause()
        self.highlighter.pause()

    def clear_highlights(self) -> None:
        self.highlighter.clear_all_highlights()

    def seek_to_paragraph(self, text: str, min_probability: Optional[float] = None) -> SeekResult:
        return self.seeker.seek_to_paragraph(text, min_probability=min_probability)

    def seek_to_paragraphs(self, texts: Sequence[str], min_probability: Optional[float] = None):
        return self.seeker.seek_to_paragraphs(texts, min_probability=min_probability)

    def extract_paragraphs(self) -> List[str]:
        return self.seeker.extract_paragraphs()

    def set_paragraph_threshold(self, threshold: float) -> None:
        self.seeker.min_probability = threshold

    def set_paragraph_context_window(self, size: int) -> None:
        self.seeker.context_window = size

    def destroy(self) -> None:
        self.highlighter.destroy()
        for register in (
            self.clock.on_play,
            self.clock.on_pause,
            self.clock.on_end,
            self.clock.on_seek,
        ):
            register(None)
        logger.info("Read-along session destroyed")


class SessionManager:
    """Owns the sessions of a multi-page reader; at most one is active."""

    def __init__(
        self,
        sessions: Sequence[ReadAlongSession],
        follower: Optional[ReadAlongFollower] = None,
    ):
        self.sessions: List[ReadAlongSession] = list(sessions)
        self.follower = follower or ReadAlongFollower()
        self.active_index: Optional[int] = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def active(self) -> Optional[ReadAlongSession]:
        if self.active_index is None:
            return None
        return self.sessions[self.active_index]

    def initialize(self, active_index: int = 0) -> None:
        """One-time setup: activate the first page and bind the follower."""
        if self._initialized:
            return
        self._initialized = True
        if self.sessions:
            self.set_active(active_index)
        logger.info("Session manager initialized with %d page(s)", len(self.sessions))

    def set_active(self, index: int) -> ReadAlongSession:
        """Make page ``index`` active, pausing every other page first."""
        if not 0 <= index < len(self.sessions):
            raise IndexError(f"No session at index {index}")

        for i, session in enumerate(self.sessions):
            if i != index:
                session.highlighter.pause()
                session.clock.pause()

        self.active_index = index
        session = self.sessions[index]
        self.follower.bind(session.highlighter)
        logger.debug("Activated page %d", index)
        return session

    def destroy(self) -> None:
        self.follower.bind(None)
        for session in self.sessions:
            session.destroy()
        self.active_index = None
        self._initialized = False
