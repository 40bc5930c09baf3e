"""Core alignment modules."""

from .clock import AudioClock, SimulatedClock
from .highlighter import HighlightStateMachine
from .matcher import Matcher
from .models import (
    EngineState,
    HighlightCursor,
    MatchResult,
    Paragraph,
    ParagraphMatch,
    SeekResult,
    TextToken,
    TimedWord,
)
from .paragraph_seeker import ParagraphSeeker
from .scheduler import IntervalScheduler, ManualScheduler, Scheduler
from .session import ReadAlongFollower, ReadAlongSession, SessionManager
from .tokenizer import RenderedDocument, RenderRef, tokenize_html
from .transcript import load_timed_words, load_transcript_file

__all__ = [
    "AudioClock",
    "SimulatedClock",
    "HighlightStateMachine",
    "Matcher",
    "EngineState",
    "HighlightCursor",
    "MatchResult",
    "Paragraph",
    "ParagraphMatch",
    "SeekResult",
    "TextToken",
    "TimedWord",
    "ParagraphSeeker",
    "Scheduler",
    "IntervalScheduler",
    "ManualScheduler",
    "ReadAlongFollower",
    "ReadAlongSession",
    "SessionManager",
    "RenderedDocument",
    "RenderRef",
    "tokenize_html",
    "load_timed_words",
    "load_transcript_file",
]
