"""Data models for document tokens, transcript words and highlight state."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Set


class EngineState(str, Enum):
    """Lifecycle state of a highlight state machine."""

    IDLE = "idle"
    TRACKING = "tracking"
    SEEKING = "seeking"
    COMPLETED = "completed"


@dataclass(frozen=True)
class TextToken:
    """One addressable word-or-separator unit of the displayed document."""

    index: int
    normalized_word: Optional[str]
    raw_text: str
    render_ref: Any = field(default=None, compare=False, repr=False)

    @property
    def is_skip(self) -> bool:
        """Pure punctuation units take part in ranges but are never matched."""
        return not self.normalized_word


@dataclass(frozen=True)
class TimedWord:
    """A single transcript word with timing information."""

    word: str
    start_time: float
    end_time: float

    def contains(self, t: float) -> bool:
        return self.start_time <= t <= self.end_time


@dataclass(frozen=True)
class MatchResult:
    """Outcome of matching one timed word against the document tokens."""

    token_index: int = -1
    probability: float = 0.0
    word_score: float = 0.0
    context_score: float = 0.0

    @property
    def matched(self) -> bool:
        return self.token_index != -1

    @classmethod
    def no_match(cls) -> "MatchResult":
        return cls()


@dataclass
class HighlightCursor:
    """Mutable highlight progress for one document/audio pairing.

    ``last_highlighted_index`` is the exclusive end of the highlighted
    prefix, i.e. the next token that would be highlighted.
    """

    last_highlighted_index: int = 0
    highlighted_indices: Set[int] = field(default_factory=set)
    next_timing_to_consider: int = 0
    processed_timing_indices: Set[int] = field(default_factory=set)
    initial_phase_done: bool = False

    def reset(self) -> None:
        self.last_highlighted_index = 0
        self.highlighted_indices.clear()
        self.next_timing_to_consider = 0
        self.processed_timing_indices.clear()
        self.initial_phase_done = False


@dataclass(frozen=True)
class ParagraphMatch:
    """Best token window found for a paragraph query."""

    start: int = -1
    end: int = -1
    probability: float = 0.0
    direct: float = 0.0
    context: float = 0.0

    @property
    def found(self) -> bool:
        return self.start >= 0


@dataclass
class Paragraph:
    """Consecutive tokens rendered under the same block-level element."""

    start: int
    end: int
    text: str
    token_indices: List[int] = field(default_factory=list)


@dataclass
class SeekResult:
    """Result of a paragraph seek request."""

    success: bool
    timestamp: Optional[float] = None
    error: Optional[str] = None
    match: Optional[ParagraphMatch] = None
    timing: Optional[TimedWord] = None
