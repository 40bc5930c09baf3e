"""Test configuration and fixtures.

Provides reusable fixtures for:
- Small tokenized documents
- Word timings and transcript files in both supported shapes
- Highlight state machines driven by a manual scheduler
"""

import json
from typing import List

import pytest

from readalong.config import AlignmentSettings
from readalong.core.clock import SimulatedClock
from readalong.core.highlighter import HighlightStateMachine
from readalong.core.models import TimedWord
from readalong.core.scheduler import ManualScheduler
from readalong.core.tokenizer import RenderedDocument, tokenize_html

FOUR_WORD_HTML = '<div id="reader"><p>the quick brown fox</p></div>'

STORY_HTML = """
<html><head><title>Story</title><style>p { color: red; }</style></head>
<body>
<div id="reader">
  <h1>The Fox</h1>
  <p>The quick brown fox jumps over the lazy dog.</p>
  <p>Then the <em>sleepy</em> dog wakes up &mdash; and barks loudly!</p>
  <ul><li>First item here</li><li>Second item there</li></ul>
</div>
<script>var ignored = "not a word";</script>
</body></html>
"""


def timed(*entries) -> List[TimedWord]:
    """Build timed words from (word, start, end) tuples."""
    return [TimedWord(word=w, start_time=s, end_time=e) for w, s, e in entries]


# =============================================================================
# Documents
# =============================================================================


@pytest.fixture
def four_word_doc():
    """Tokenized "the quick brown fox" document."""
    return tokenize_html(FOUR_WORD_HTML)


@pytest.fixture
def story_doc():
    return tokenize_html(STORY_HTML, container_selector="#reader")


# =============================================================================
# Timings
# =============================================================================


@pytest.fixture
def four_word_timings():
    return timed(
        ("the", 0.0, 0.2),
        ("quick", 0.2, 0.5),
        ("brown", 0.5, 0.8),
        ("fox", 0.8, 1.0),
    )


@pytest.fixture
def gapped_timings():
    """Timings with silences between words so seek targets are unambiguous."""
    return timed(
        ("the", 0.0, 0.1),
        ("quick", 0.2, 0.3),
        ("brown", 0.5, 0.55),
        ("fox", 0.8, 1.0),
    )


@pytest.fixture
def flat_transcript():
    return [
        {"word": "the", "time_start": 0.0, "time_end": 0.2},
        {"word": "quick", "time_start": 0.2, "time_end": 0.5},
        {"word": "brown", "time_start": 0.5, "time_end": 0.8},
        {"word": "fox", "time_start": 0.8, "time_end": 1.0},
    ]


@pytest.fixture
def monologue_transcript():
    return {
        "monologues": [
            {
                "speaker": 0,
                "elements": [
                    {"type": "text", "value": "the", "ts": 0.0, "end_ts": 0.2},
                    {"type": "punct", "value": " "},
                    {"type": "text", "value": "quick", "ts": 0.2, "end_ts": 0.5},
                ],
            },
            {
                "speaker": 1,
                "elements": [
                    {"type": "text", "value": "brown", "ts": 0.5, "end_ts": 0.8},
                    {"type": "punct", "value": "."},
                    {"type": "text", "value": "fox", "ts": 0.8, "end_ts": 1.0},
                ],
            },
        ]
    }


@pytest.fixture
def write_json(tmp_path):
    """Write an object to a JSON file under tmp_path and return the path."""

    def _write(name, data):
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write


# =============================================================================
# Engines
# =============================================================================


@pytest.fixture
def make_machine():
    """Factory for a state machine on a fresh document with a manual scheduler."""

    def _make(html, timings, **overrides):
        document = RenderedDocument(html)
        document.tokenize()
        settings = AlignmentSettings(**overrides).validate()
        machine = HighlightStateMachine(
            document, timings, settings=settings, scheduler=ManualScheduler()
        )
        return document, machine

    return _make


@pytest.fixture
def four_word_machine(make_machine, four_word_timings):
    return make_machine(FOUR_WORD_HTML, four_word_timings)


@pytest.fixture
def clock():
    return SimulatedClock(duration=1.0)
