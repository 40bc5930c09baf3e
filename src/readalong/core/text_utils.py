"""
Text utilities for word normalization and context similarity.

Both the matcher and the paragraph seeker compare short lists of
normalized words; the helpers here keep that comparison in one place.
"""

import re
import unicodedata
from typing import List, Optional, Sequence

# Letters, digits and apostrophes survive normalization
_NON_WORD_CHARS_RE = re.compile(r"[^\w'’]|_", re.UNICODE)
_QUERY_STRIP_RE = re.compile(r"[^\w\s]", re.UNICODE)
_WHITESPACE_SPLIT_RE = re.compile(r"(\s+)")


def normalize_word(text: Optional[str]) -> str:
    """Lowercase, NFKC-compose and strip everything but letters/digits/apostrophes."""
    if not text:
        return ""
    text = unicodedata.normalize("NFKC", text.lower())
    return _NON_WORD_CHARS_RE.sub("", text)


def normalize_query(text: Optional[str]) -> List[str]:
    """Split free text into a list of lowercase words without punctuation."""
    if not text:
        return []
    cleaned = _QUERY_STRIP_RE.sub("", text.lower())
    return [w for w in cleaned.split() if w]


def clean_query_word(word: Optional[str]) -> str:
    """Apply the query cleaning rules to a single word."""
    if not word:
        return ""
    return _QUERY_STRIP_RE.sub("", word.lower()).strip()


def split_preserving_whitespace(text: str) -> List[str]:
    """Split text into alternating non-whitespace and whitespace runs."""
    return [part for part in _WHITESPACE_SPLIT_RE.split(text) if part]


def context_similarity(
    first: Sequence[str],
    second: Sequence[str],
    overlap_weight: float = 0.6,
    positional_weight: float = 0.4,
) -> float:
    """Blend unordered overlap with positional agreement of two word lists.

    Returns 1.0 when both lists are empty and 0.0 when exactly one is.
    """
    if not first and not second:
        return 1.0
    if not first or not second:
        return 0.0

    second_set = set(second)
    overlap = sum(1 for word in first if word in second_set)
    overlap_score = overlap / max(len(first), len(second))

    shared = min(len(first), len(second))
    positional = sum(1 for i in range(shared) if first[i] == second[i])
    positional_score = positional / shared

    return overlap_score * overlap_weight + positional_score * positional_weight
