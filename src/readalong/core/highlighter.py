"""Incremental word highlighting driven by the playback clock.

Each tick walks the transcript words that have become due, matches them
against the document tokens near the current highlight position, and grows
the highlighted prefix of the document. The highlighted set is always the
prefix ``range(0, cursor.last_highlighted_index)``; only a seek can shrink
it.
"""

import bisect
import logging
import math
import threading
from typing import Callable, List, Optional, Sequence

from ..config import FALLBACK_FORWARD_EXACT, AlignmentSettings
from .matcher import Matcher
from .models import EngineState, HighlightCursor, MatchResult, TextToken, TimedWord
from .scheduler import ManualScheduler, Scheduler
from .tokenizer import RenderedDocument

logger = logging.getLogger(__name__)

WordListener = Callable[[TextToken], None]


class HighlightStateMachine:
    """Tracks highlight progress for one document/audio pairing."""

    def __init__(
        self,
        document: RenderedDocument,
        timed_words: Sequence[TimedWord],
        settings: Optional[AlignmentSettings] = None,
        scheduler: Optional[Scheduler] = None,
        matcher: Optional[Matcher] = None,
    ):
        self.settings = settings or AlignmentSettings()
        self.document = document
        self.tokens: List[TextToken] = list(document.tokens)
        self.timed_words: List[TimedWord] = list(timed_words)
        self.matcher = matcher or Matcher(self.tokens, self.timed_words, self.settings)
        self.scheduler = scheduler or ManualScheduler()
        self.cursor = HighlightCursor()
        self.state = EngineState.IDLE
        self.current_token: Optional[TextToken] = None

        self._listeners: List[WordListener] = []
        self._lock = threading.RLock()
        self._starts = [w.start_time for w in self.timed_words]

    # ----------------------
    # Listeners
    # ----------------------
    def add_listener(self, listener: WordListener) -> None:
        """Register a callback notified with each newly highlighted token."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: WordListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, token: TextToken) -> None:
        for listener in list(self._listeners):
            try:
                listener(token)
            except Exception:
                logger.exception("Word highlight listener failed")

    # ----------------------
    # Lifecycle
    # ----------------------
    def start(
        self,
        get_current_time: Callable[[], float],
        get_duration: Callable[[], float],
    ) -> None:
        """Begin polling the clock; each poll runs one :meth:`tick`."""

        def _poll() -> None:
            self.tick(get_current_time(), get_duration())

        with self._lock:
            if self.state != EngineState.COMPLETED:
                self.state = EngineState.TRACKING
        logger.info("Highlighting started (%d tokens, %d timings)",
                    len(self.tokens), len(self.timed_words))
        self.scheduler.start(_poll)

    def pause(self) -> None:
        """Stop polling; the cursor is kept so tracking can resume."""
        # The scheduler is stopped outside our lock: a running tick holds
        # the scheduler lock while waiting for ours.
        self.scheduler.stop()
        with self._lock:
            if self.state == EngineState.TRACKING:
                self.state = EngineState.IDLE

    def destroy(self) -> None:
        """Stop polling and clear all highlight state. Safe to call repeatedly."""
        self.scheduler.stop()
        with self._lock:
            self.clear_all_highlights()
            self.state = EngineState.IDLE
            self._listeners.clear()

    @property
    def is_running(self) -> bool:
        return self.scheduler.running

    # ----------------------
    # Core highlight operations
    # ----------------------
    def _rehydrate(self, probe_indices=()) -> int:
        """Remap stale render refs and repaint the highlighted prefix onto them."""
        stale = self.document.rehydrate_if_stale(probe_indices=probe_indices)
        if stale > 0:
            self.document.reapply(self.cursor.highlighted_indices)
        return stale

    def clear_all_highlights(self) -> None:
        with self._lock:
            for i in sorted(self.cursor.highlighted_indices):
                self.document.set_highlighted(i, False)
            self.cursor.reset()
            self.current_token = None

    def highlight_range(self, start: int, end: int, reason: str = "") -> int:
        """Highlight ``[start, end]`` clipped to continue the highlighted prefix.

        Returns the number of newly highlighted tokens.
        """
        if not self.tokens:
            return 0
        with self._lock:
            cursor = self.cursor
            actual_start = max(start, cursor.last_highlighted_index)
            actual_end = min(max(end, actual_start), len(self.tokens) - 1)
            if actual_start > actual_end:
                return 0

            self._rehydrate((actual_start, actual_end))
            added = 0
            for i in range(actual_start, actual_end + 1):
                if i in cursor.highlighted_indices:
                    continue
                cursor.highlighted_indices.add(i)
                # Stale render refs make this a no-op; the index still counts
                self.document.set_highlighted(i, True)
                token = self.tokens[i]
                self.current_token = token
                added += 1
                logger.debug('Highlighted "%s" @%d %s', token.raw_text, i, reason)
                self._notify(token)
            cursor.last_highlighted_index = max(
                cursor.last_highlighted_index, actual_end + 1
            )
            return added

    def fill_gaps_to_target(self, target_index: int, reason: str = "") -> int:
        """Highlight every token before ``target_index`` not yet highlighted."""
        if target_index > self.cursor.last_highlighted_index:
            return self.highlight_range(
                self.cursor.last_highlighted_index,
                target_index - 1,
                f"(filling gap {reason})",
            )
        return 0

    def _accepts(self, match: MatchResult) -> bool:
        return match.matched and match.probability >= self.settings.min_highlight_probability

    def _match(self, timing_index: int, search_center: Optional[int] = None) -> MatchResult:
        center = self.cursor.last_highlighted_index if search_center is None else search_center
        return self.matcher.match(self.timed_words[timing_index], timing_index, center)

    # ----------------------
    # Tick phases
    # ----------------------
    def _due_count(self, t: float) -> int:
        """Number of timed words whose lookahead-adjusted start is <= t."""
        return bisect.bisect_right(self._starts, t + self.settings.lookahead)

    def handle_initial_words(self, t: float) -> None:
        """Estimate progress through text read before the first timed word."""
        if self.cursor.initial_phase_done or not self.timed_words:
            return
        first = self.timed_words[0]
        lookahead_time = first.start_time - self.settings.lookahead
        if max(0.0, lookahead_time) <= t < first.start_time:
            estimated = max(1, math.floor(t * self.settings.words_per_second))
            self.highlight_range(0, estimated - 1, "(initial words before first timed word)")
            logger.debug("Highlighted %d initial words (%.3fs)", estimated, t)
        if t >= first.start_time:
            self.cursor.initial_phase_done = True

    def process_word_timing(self, index: int, t: float) -> None:
        """Match one due timed word and highlight through it."""
        cursor = self.cursor
        if index in cursor.processed_timing_indices:
            return
        cursor.processed_timing_indices.add(index)

        word = self.timed_words[index]
        match = self._match(index)
        if not self._accepts(match):
            self._handle_rejected(index, match)
            return

        if match.token_index < cursor.last_highlighted_index:
            # Already inside the highlighted prefix
            return

        self.fill_gaps_to_target(match.token_index, f'before "{word.word}"')
        self.highlight_range(
            match.token_index,
            match.token_index,
            f"(p={match.probability:.3f}, w={match.word_score:.0f}, "
            f"c={match.context_score:.3f})",
        )
        self._fill_toward_next_word(index, match)

    def _fill_toward_next_word(self, index: int, match: MatchResult) -> None:
        if index >= len(self.timed_words) - 1:
            return
        word = self.timed_words[index]
        next_word = self.timed_words[index + 1]
        next_match = self._match(index + 1)
        if not self._accepts(next_match) or next_match.token_index <= match.token_index + 1:
            return

        time_gap = next_word.start_time - word.end_time
        between = next_match.token_index - match.token_index - 1
        if time_gap > self.settings.silence_gap:
            estimated = max(1, math.ceil(time_gap * self.settings.gap_words_per_second))
            count = min(estimated, between)
            self.highlight_range(
                match.token_index + 1,
                match.token_index + count,
                f"(~{count} words in {time_gap:.3f}s gap)",
            )
        else:
            self.highlight_range(
                match.token_index + 1,
                next_match.token_index - 1,
                "(between consecutive timed words)",
            )

    def _handle_rejected(self, index: int, match: MatchResult) -> None:
        word = self.timed_words[index]
        if self.settings.fallback_policy == FALLBACK_FORWARD_EXACT:
            forward = self.matcher.forward_exact_search(
                word.word, self.cursor.last_highlighted_index
            )
            if forward != -1:
                self.fill_gaps_to_target(forward, f'forward search for "{word.word}"')
                self.highlight_range(forward, forward, "(forward exact match)")
                return
        logger.debug(
            'Skipping low-confidence match for "%s" (p=%.3f)', word.word, match.probability
        )

    def process_up_to_time(self, t: float) -> None:
        """Process every timed word that has become due by ``t``."""
        due = self._due_count(t)
        while self.cursor.next_timing_to_consider < due:
            index = self.cursor.next_timing_to_consider
            self.process_word_timing(index, t)
            self.cursor.next_timing_to_consider += 1

    def catch_up_to_current_time(self, t: float) -> None:
        """Fill forward to the most recent due word when it matches ahead of the cursor."""
        last_due = self._due_count(t) - 1
        if last_due < 0:
            return
        match = self._match(last_due)
        if self._accepts(match) and match.token_index >= self.cursor.last_highlighted_index:
            self.fill_gaps_to_target(match.token_index + 1, "catching up to current time")

    def tick(self, t: float, duration: Optional[float] = None) -> None:
        """Advance highlighting to playback position ``t``."""
        if t is None or not math.isfinite(t) or t < 0:
            return
        with self._lock:
            if not self.tokens:
                return
            self._rehydrate((self.cursor.last_highlighted_index - 1,))
            self.handle_initial_words(t)
            self.process_up_to_time(t)
            self.catch_up_to_current_time(t)

            if duration and t >= duration - self.settings.end_guard:
                self.highlight_range(
                    self.cursor.last_highlighted_index,
                    len(self.tokens) - 1,
                    "(final words at audio end)",
                )
                self.state = EngineState.COMPLETED

    # ----------------------
    # Seeking and end of audio
    # ----------------------
    def _proportional_center(self, timing_index: int) -> int:
        """Token index expected for a timing index if narration were uniform."""
        if not self.timed_words:
            return 0
        return int(timing_index * len(self.tokens) / len(self.timed_words))

    def _resolve_timing(self, timing_index: int) -> int:
        match = self._match(timing_index, self._proportional_center(timing_index))
        if self._accepts(match):
            return match.token_index
        if self.settings.fallback_policy == FALLBACK_FORWARD_EXACT:
            return self.matcher.forward_exact_search(
                self.timed_words[timing_index].word,
                self._proportional_center(timing_index) - self.settings.window_size,
                window_size=2 * self.settings.window_size + 1,
            )
        return -1

    def _estimate_index(self, t: float) -> int:
        estimated = max(0, math.floor(t * self.settings.words_per_second))
        return min(estimated, len(self.tokens) - 1)

    def resolve_seek_target(self, t: float) -> tuple:
        """Map a playback time to ``(token_index, timing_index)``.

        Tries the timed word whose interval contains ``t``, then the nearest
        preceding timed word, then a linear words-per-second estimate.
        ``timing_index`` is -1 when the estimate was used; ``token_index``
        is -1 when nothing should be highlighted.
        """
        containing = next(
            (i for i, w in enumerate(self.timed_words) if w.contains(t)), None
        )
        if containing is not None:
            index = self._resolve_timing(containing)
            if index != -1:
                logger.debug('Seek resolved by containing word "%s"',
                             self.timed_words[containing].word)
                return index, containing

        preceding = bisect.bisect_right(self._starts, t) - 1
        if preceding >= 0:
            index = self._resolve_timing(preceding)
            if index != -1:
                logger.debug('Seek resolved by preceding word "%s"',
                             self.timed_words[preceding].word)
                return index, preceding

        if t > 0:
            return self._estimate_index(t), -1
        return -1, -1

    def handle_seek(self, new_time: float) -> int:
        """Reset all highlight state and re-highlight up to ``new_time``.

        Returns the resolved token index, or -1 when nothing was highlighted.
        """
        with self._lock:
            self.state = EngineState.SEEKING
            self.clear_all_highlights()
            if not self.tokens or new_time is None or not math.isfinite(new_time):
                self.state = self._state_after_seek()
                return -1
            logger.info("Handling seek to %.3fs", new_time)

            token_index, timing_index = self.resolve_seek_target(max(0.0, new_time))
            if token_index >= 0:
                self.highlight_range(0, token_index, f"(seek to {new_time:.3f}s)")

            # Words up to the resolved one are covered by the bulk highlight
            if timing_index >= 0:
                resumed = timing_index + 1
            else:
                resumed = bisect.bisect_right(self._starts, new_time)
            self.cursor.next_timing_to_consider = resumed
            self.cursor.processed_timing_indices.update(range(resumed))
            self.state = self._state_after_seek()
            return token_index

    def _state_after_seek(self) -> EngineState:
        # A seek reopens a completed pairing
        if self.scheduler.running:
            return EngineState.TRACKING
        return EngineState.IDLE

    def handle_audio_end(self, duration: Optional[float] = None) -> int:
        """Force-highlight every remaining token. Returns how many were added."""
        self.scheduler.stop()
        with self._lock:
            total = len(self.tokens)
            remaining = total - len(self.cursor.highlighted_indices)
            logger.info(
                "Audio ended at %.3fs; highlighted %d/%d",
                duration or 0.0,
                len(self.cursor.highlighted_indices),
                total,
            )
            added = 0
            if remaining > 0:
                added = self.highlight_range(
                    self.cursor.last_highlighted_index,
                    total - 1,
                    "(ensure all highlighted at end)",
                )
            self.state = EngineState.COMPLETED
            return added

    # ----------------------
    # Introspection
    # ----------------------
    @property
    def last_highlighted_index(self) -> int:
        return self.cursor.last_highlighted_index

    @property
    def highlighted_indices(self) -> set:
        return set(self.cursor.highlighted_indices)
