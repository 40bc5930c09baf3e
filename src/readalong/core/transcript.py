"""Transcript loading and normalization.

Time-aligned transcripts arrive either as a flat list of
``{"word", "time_start", "time_end"}`` entries or as nested monologues whose
``elements`` carry ``type: "text"`` and timestamps under varying key names.
Both are normalized into a sorted list of :class:`TimedWord`.
"""

import json
import logging
import math
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple, Union

from ..exceptions import TranscriptError
from .models import TimedWord

logger = logging.getLogger(__name__)

_START_KEYS = ("ts", "start_ts", "time_start", "start")
_END_KEYS = ("end_ts", "time_end", "end")
_WORD_KEYS = ("value", "word", "text")


def _first_number(entry: dict, keys: Tuple[str, ...]) -> Optional[float]:
    for key in keys:
        value = entry.get(key)
        # bool is an int subclass but never a timestamp
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if math.isfinite(value):
                return float(value)
    return None


def _first_text(entry: dict, keys: Tuple[str, ...]) -> str:
    for key in keys:
        value = entry.get(key)
        if value is not None:
            return str(value).strip()
    return ""


def _is_monologue(item: Any) -> bool:
    return isinstance(item, dict) and isinstance(item.get("elements"), list)


def _iter_raw_entries(raw: Any) -> Iterator[dict]:
    """Yield word-level dicts from either transcript shape."""
    if isinstance(raw, dict):
        if "monologues" not in raw:
            raise TranscriptError("Transcript object has no 'monologues' key")
        monologues = raw.get("monologues") or []
    elif isinstance(raw, list):
        if any(_is_monologue(item) for item in raw):
            monologues = raw
        else:
            for item in raw:
                if isinstance(item, dict):
                    yield item
            return
    else:
        raise TranscriptError(
            f"Unsupported transcript type: {type(raw).__name__}"
        )

    for monologue in monologues:
        if not _is_monologue(monologue):
            continue
        for element in monologue["elements"]:
            if isinstance(element, dict) and element.get("type") == "text":
                yield element


def load_timed_words(raw: Any, offset_ms: float = 0) -> List[TimedWord]:
    """Normalize a raw transcript into timed words sorted by start time.

    Entries missing a word, start or end are dropped. ``offset_ms`` shifts
    every timestamp; shifted times are clamped at zero.
    """
    if raw is None:
        return []

    offset = offset_ms / 1000.0
    words: List[TimedWord] = []
    dropped = 0
    for entry in _iter_raw_entries(raw):
        word = _first_text(entry, _WORD_KEYS)
        start = _first_number(entry, _START_KEYS)
        end = _first_number(entry, _END_KEYS)
        if not word or start is None or end is None:
            dropped += 1
            continue
        start = max(0.0, start + offset)
        end = max(0.0, end + offset)
        words.append(TimedWord(word=word, start_time=start, end_time=max(end, start)))

    if dropped:
        logger.debug("Dropped %d transcript entries without word or timing", dropped)

    # sorted() is stable, so equal start times keep transcript order
    words = sorted(words, key=lambda w: w.start_time)
    logger.info("Loaded %d word timings", len(words))
    if offset_ms:
        logger.info("Applied %dms offset to all timings", offset_ms)
    return words


def load_transcript_file(
    path: Union[str, Path], offset_ms: float = 0
) -> List[TimedWord]:
    """Read a transcript JSON file and normalize it."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except OSError as e:
        raise TranscriptError(f"Cannot read transcript {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise TranscriptError(f"Transcript {path} is not valid JSON: {e}") from e
    return load_timed_words(raw, offset_ms=offset_ms)
