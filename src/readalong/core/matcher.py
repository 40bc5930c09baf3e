"""Local context matching of transcript words against document tokens.

A bounded aligner rather than a global one: each timed word is compared
with the tokens in a window around the current highlight position, and
the neighborhoods of both streams disambiguate repeated or misrecognized
words.
"""

import logging
from typing import Dict, List, Optional, Sequence

from ..config import AlignmentSettings
from .models import MatchResult, TextToken, TimedWord
from .text_utils import context_similarity, normalize_word

logger = logging.getLogger(__name__)


class Matcher:
    """Scores candidate tokens for one timed word using identity and context."""

    def __init__(
        self,
        tokens: Sequence[TextToken],
        timed_words: Sequence[TimedWord],
        settings: Optional[AlignmentSettings] = None,
    ):
        self.settings = settings or AlignmentSettings()
        self._tokens: Sequence[TextToken] = tokens
        self._timed_words: Sequence[TimedWord] = timed_words
        self._normalized_timings = [normalize_word(w.word) for w in timed_words]
        self._audio_context_cache: Dict[tuple, List[str]] = {}
        self._text_context_cache: Dict[tuple, List[str]] = {}

    @property
    def tokens(self) -> Sequence[TextToken]:
        return self._tokens

    @property
    def timed_words(self) -> Sequence[TimedWord]:
        return self._timed_words

    # ----------------------
    # Context windows
    # ----------------------
    def audio_context(self, timing_index: int, size: Optional[int] = None) -> List[str]:
        """Normalized transcript words around ``timing_index``, excluding it."""
        size = self.settings.window_size if size is None else size
        key = (timing_index, size)
        cached = self._audio_context_cache.get(key)
        if cached is not None:
            return cached
        start = max(0, timing_index - size)
        end = min(len(self._normalized_timings) - 1, timing_index + size)
        context = [
            self._normalized_timings[i]
            for i in range(start, end + 1)
            if i != timing_index and self._normalized_timings[i]
        ]
        self._audio_context_cache[key] = context
        return context

    def text_context(self, token_index: int, size: Optional[int] = None) -> List[str]:
        """Normalized token words around ``token_index``, excluding it and skip tokens."""
        size = self.settings.window_size if size is None else size
        key = (token_index, size)
        cached = self._text_context_cache.get(key)
        if cached is not None:
            return cached
        start = max(0, token_index - size)
        end = min(len(self._tokens) - 1, token_index + size)
        context = [
            self._tokens[i].normalized_word
            for i in range(start, end + 1)
            if i != token_index and not self._tokens[i].is_skip
        ]
        self._text_context_cache[key] = context
        return context

    # ----------------------
    # Matching
    # ----------------------
    def score_candidate(
        self,
        target: str,
        audio_context: List[str],
        token: TextToken,
        context_size: Optional[int] = None,
    ) -> MatchResult:
        """Score one non-skip token against a normalized target word.

        ``context_size`` should match the size used for ``audio_context``.
        """
        s = self.settings
        word_score = 1.0 if target == token.normalized_word else 0.0
        context_score = context_similarity(
            audio_context,
            self.text_context(token.index, context_size),
            overlap_weight=s.overlap_weight,
            positional_weight=s.positional_weight,
        )
        probability = word_score * s.word_weight + context_score * s.context_weight
        return MatchResult(
            token_index=token.index,
            probability=probability,
            word_score=word_score,
            context_score=context_score,
        )

    def match(
        self,
        timed_word: TimedWord,
        timed_word_index: int,
        search_center: int,
        window_size: Optional[int] = None,
    ) -> MatchResult:
        """Find the token most likely spoken as ``timed_word``.

        Returns ``MatchResult.no_match()`` when no candidate clears the
        acceptance gate.
        """
        if not self._tokens:
            return MatchResult.no_match()

        s = self.settings
        window = s.window_size if window_size is None else window_size
        target = normalize_word(timed_word.word)
        audio_context = self.audio_context(timed_word_index, window)

        start = max(0, search_center - window)
        end = min(len(self._tokens) - 1, search_center + window)

        best = MatchResult.no_match()
        for i in range(start, end + 1):
            token = self._tokens[i]
            if token.is_skip:
                continue
            candidate = self.score_candidate(target, audio_context, token, window)
            # Strict comparison keeps the lowest index on ties
            if candidate.probability > best.probability:
                best = candidate

        if not best.matched:
            return MatchResult.no_match()

        if best.word_score == 1.0:
            threshold = s.exact_match_threshold
        else:
            threshold = s.context_match_threshold
        if best.probability > threshold:
            return best
        return MatchResult.no_match()

    def forward_exact_search(
        self, word: str, from_index: int, window_size: Optional[int] = None
    ) -> int:
        """Index of the first token at or after ``from_index`` spelled like ``word``."""
        if not self._tokens:
            return -1
        window = self.settings.window_size if window_size is None else window_size
        target = normalize_word(word)
        if not target:
            return -1
        start = max(0, from_index)
        end = min(len(self._tokens), start + max(3, window))
        for i in range(start, end):
            if self._tokens[i].normalized_word == target:
                return i
        return -1
