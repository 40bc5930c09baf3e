"""Free-text paragraph lookup and audio seeking.

A user selects or types a passage; the seeker finds the best matching token
window in the document, maps its first word to a transcript timing, and
seeks the playback clock there.
"""

import logging
from typing import List, Optional, Sequence

from bs4 import Tag

from ..config import PARAGRAPH_CONTEXT_WINDOW_RANGE, AlignmentSettings
from .clock import AudioClock
from .models import Paragraph, ParagraphMatch, SeekResult, TimedWord
from .text_utils import clean_query_word, context_similarity, normalize_query
from .tokenizer import RenderedDocument

logger = logging.getLogger(__name__)

BLOCK_TAGS = frozenset(
    [
        "p", "h1", "h2", "h3", "h4", "h5", "h6", "li", "blockquote", "pre",
        "div", "section", "article", "aside", "header", "footer", "main",
        "nav", "dd", "dt", "figcaption", "address",
    ]
)


def _similarity(first: Sequence[str], second: Sequence[str]) -> float:
    # Unlike the matcher, two empty lists carry no evidence here
    if not first or not second:
        return 0.0
    return context_similarity(first, second)


class ParagraphSeeker:
    """Maps passages of document text to playback positions."""

    def __init__(
        self,
        document: RenderedDocument,
        timed_words: Sequence[TimedWord],
        clock: Optional[AudioClock] = None,
        settings: Optional[AlignmentSettings] = None,
    ):
        self.settings = settings or AlignmentSettings()
        self.document = document
        self.timed_words: List[TimedWord] = list(timed_words)
        self.clock = clock
        self._min_probability = self.settings.paragraph_min_probability
        self._context_window = self.settings.paragraph_context_window

        self._token_words = [clean_query_word(t.normalized_word) for t in document.tokens]
        self._timing_words = [clean_query_word(w.word) for w in self.timed_words]

    # ----------------------
    # Tunables
    # ----------------------
    @property
    def min_probability(self) -> float:
        return self._min_probability

    @min_probability.setter
    def min_probability(self, value: float) -> None:
        self._min_probability = min(1.0, max(0.0, float(value)))

    @property
    def context_window(self) -> int:
        return self._context_window

    @context_window.setter
    def context_window(self, value: int) -> None:
        low, high = PARAGRAPH_CONTEXT_WINDOW_RANGE
        self._context_window = min(high, max(low, int(value)))

    # ----------------------
    # Context helpers
    # ----------------------
    def text_context(self, start: int, end: int) -> List[str]:
        """Cleaned token words in ``[start - window, end + window)``."""
        lo = max(0, start - self._context_window)
        hi = min(len(self._token_words), end + self._context_window)
        return [w for w in self._token_words[lo:hi] if w]

    def audio_context(self, timing_index: int) -> List[str]:
        """Cleaned transcript words around ``timing_index``."""
        lo = max(0, timing_index - self._context_window)
        hi = min(len(self._timing_words), timing_index + self._context_window)
        return [w for w in self._timing_words[lo:hi] if w]

    # ----------------------
    # Matching
    # ----------------------
    def find_best_text_match(self, query_words: Sequence[str]) -> ParagraphMatch:
        """Slide a query-sized window over the tokens and keep the best score."""
        size = len(query_words)
        total = len(self._token_words)
        best = ParagraphMatch()
        if not size or size > total:
            return best

        direct_weight = self.settings.paragraph_direct_weight
        min_words = size * self.settings.min_window_coverage
        for i in range(total - size + 1):
            window = [w for w in self._token_words[i:i + size] if w]
            if len(window) < min_words:
                continue
            direct = _similarity(query_words, window)
            context = _similarity(query_words, self.text_context(i, i + size))
            probability = direct * direct_weight + context * (1 - direct_weight)
            if probability > best.probability:
                best = ParagraphMatch(
                    start=i,
                    end=i + size - 1,
                    probability=probability,
                    direct=direct,
                    context=context,
                )
        return best

    def find_audio_timing(self, token_index: int) -> Optional[TimedWord]:
        """Pick the timed word spelled like the token whose neighborhood agrees best."""
        if not self.timed_words or not 0 <= token_index < len(self._token_words):
            return None
        target = self._token_words[token_index]
        if not target:
            return None

        text_context = self.text_context(token_index, token_index + 1)
        best: Optional[TimedWord] = None
        best_score = 0.0
        for i, word in enumerate(self._timing_words):
            if word != target:
                continue
            score = 0.5 + 0.5 * _similarity(text_context, self.audio_context(i))
            if score > best_score:
                best, best_score = self.timed_words[i], score
        return best

    # ----------------------
    # Seeking
    # ----------------------
    def seek_to_paragraph(
        self, text: str, min_probability: Optional[float] = None
    ) -> SeekResult:
        """Seek the clock to the start of the passage best matching ``text``."""
        threshold = self._min_probability if min_probability is None else min_probability
        words = normalize_query(text)
        if not words:
            return SeekResult(success=False, error="No valid words")

        match = self.find_best_text_match(words)
        if match.probability < threshold:
            logger.info(
                "No paragraph match for %r (best p=%.3f)", text[:40], match.probability
            )
            return SeekResult(success=False, error="Low match probability", match=match)

        timing = self.find_audio_timing(match.start)
        if timing is None:
            return SeekResult(success=False, error="No audio timing", match=match)

        if self.clock is not None:
            self.clock.seek(timing.start_time)
        logger.info("Seeked to %.3fs for paragraph at token %d", timing.start_time, match.start)
        return SeekResult(
            success=True, timestamp=timing.start_time, match=match, timing=timing
        )

    def seek_to_paragraphs(
        self, texts: Sequence[str], min_probability: Optional[float] = None
    ) -> List[SeekResult]:
        """Try each passage in order, stopping at the first successful seek."""
        results = []
        for text in texts:
            result = self.seek_to_paragraph(text, min_probability=min_probability)
            results.append(result)
            if result.success:
                break
        return results

    # ----------------------
    # Paragraph detection
    # ----------------------
    @staticmethod
    def _closest_block(element: Tag, stop_at: Tag) -> Tag:
        node = element.parent
        while node is not None and node is not stop_at:
            if node.name in BLOCK_TAGS:
                return node
            node = node.parent
        return stop_at

    def find_paragraph_boundaries(self) -> List[Paragraph]:
        """Group consecutive live tokens that share a block-level ancestor."""
        container = self.document.container
        paragraphs: List[Paragraph] = []
        current: Optional[Paragraph] = None
        current_host = None

        for token in self.document.tokens:
            element = self.document.element_for(token.index)
            if element is None:
                continue
            host = self._closest_block(element, container)
            if current is None or host is not current_host:
                current = Paragraph(start=token.index, end=token.index, text="")
                paragraphs.append(current)
                current_host = host
            current.end = token.index
            current.token_indices.append(token.index)
            current.text = f"{current.text} {token.raw_text}" if current.text else token.raw_text

        if paragraphs:
            logger.debug("Found %d paragraph(s)", len(paragraphs))
        else:
            logger.warning("No paragraph boundaries found")
        return paragraphs

    def extract_paragraphs(self) -> List[str]:
        """Text of every detected paragraph, empty ones dropped."""
        return [p.text.strip() for p in self.find_paragraph_boundaries() if p.text.strip()]
