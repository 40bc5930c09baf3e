"""JSON serialization for tokens, word timings and highlight timelines."""

import json
from dataclasses import dataclass
from typing import List, Optional

from .models import Paragraph, SeekResult, TextToken, TimedWord


@dataclass(frozen=True)
class HighlightEvent:
    """A token that became highlighted at a given playback time."""

    time: float
    token_index: int
    text: str


def tokens_to_json(tokens: List[TextToken]) -> List[dict]:
    """Convert document tokens into JSON-serializable dicts."""
    return [
        {
            "index": t.index,
            "text": t.raw_text,
            "word": t.normalized_word,
            "skip": t.is_skip,
        }
        for t in tokens
    ]


def timed_words_to_json(words: List[TimedWord]) -> List[dict]:
    """Convert word timings into the flat transcript shape."""
    return [
        {"word": w.word, "time_start": w.start_time, "time_end": w.end_time}
        for w in words
    ]


def timeline_to_json(events: List[HighlightEvent]) -> List[dict]:
    return [
        {"time": round(e.time, 3), "index": e.token_index, "text": e.text}
        for e in events
    ]


def paragraphs_to_json(paragraphs: List[Paragraph]) -> List[dict]:
    return [{"start": p.start, "end": p.end, "text": p.text} for p in paragraphs]


def seek_result_to_json(result: SeekResult) -> dict:
    """Convert a SeekResult to a JSON-serializable dict."""
    data = {"success": result.success}
    if result.timestamp is not None:
        data["timestamp"] = result.timestamp
    if result.error:
        data["error"] = result.error
    if result.match is not None:
        data["match"] = {
            "start": result.match.start,
            "end": result.match.end,
            "probability": round(result.match.probability, 4),
            "direct": round(result.match.direct, 4),
            "context": round(result.match.context, 4),
        }
    if result.timing is not None:
        data["timing"] = timed_words_to_json([result.timing])[0]
    return data


def save_timeline_to_json(
    filepath: str,
    events: List[HighlightEvent],
    tokens: Optional[List[TextToken]] = None,
) -> None:
    """Save a highlight timeline (and optionally the tokens) to a JSON file."""
    data = {"timeline": timeline_to_json(events)}
    if tokens is not None:
        data["tokens"] = tokens_to_json(tokens)
    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
