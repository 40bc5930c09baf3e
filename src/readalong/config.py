"""Configuration settings for ReadAlong."""

import os
from dataclasses import dataclass, fields

from .exceptions import ConfigError

# Matcher (can be overridden via environment variables)
MATCH_WINDOW_SIZE = int(os.getenv("READALONG_MATCH_WINDOW", "10"))
WORD_WEIGHT = 0.4
CONTEXT_WEIGHT = 0.6
OVERLAP_WEIGHT = 0.6
POSITIONAL_WEIGHT = 0.4
EXACT_MATCH_THRESHOLD = 0.2  # Accept exact-word matches above this probability
CONTEXT_MATCH_THRESHOLD = 0.3  # Accept context-only matches above this probability

# External probability gate applied by the highlighter (0 disables it)
MIN_HIGHLIGHT_PROBABILITY = float(os.getenv("READALONG_MIN_PROBABILITY", "0.0"))

# Highlight timing
LOOKAHEAD_MS = int(os.getenv("READALONG_LOOKAHEAD_MS", "50"))
WORDS_PER_SECOND = 2.5  # Narration rate used when no transcript word applies
GAP_WORDS_PER_SECOND = 3.0  # Rate used to fill silent gaps between anchors
SILENCE_GAP = 0.1  # Gaps longer than this are treated as silence
END_GUARD = 0.1  # Seconds before the end at which everything is highlighted
POLL_INTERVAL = float(os.getenv("READALONG_POLL_INTERVAL", "0.05"))
MAX_POLL_INTERVAL = 0.1

# Rejected-match fallback
FALLBACK_SKIP = "skip"
FALLBACK_FORWARD_EXACT = "forward_exact"
FALLBACK_POLICIES = (FALLBACK_SKIP, FALLBACK_FORWARD_EXACT)
FALLBACK_POLICY = os.getenv("READALONG_FALLBACK_POLICY", FALLBACK_SKIP)

# Paragraph seeking
PARAGRAPH_MIN_PROBABILITY = 0.4
PARAGRAPH_CONTEXT_WINDOW = 15
PARAGRAPH_CONTEXT_WINDOW_RANGE = (5, 50)
PARAGRAPH_DIRECT_WEIGHT = 0.7
MIN_WINDOW_COVERAGE = 0.5

# Transcript offsets
MAX_OFFSET_MS = 60000

# Document markup
WORD_CLASS = "word"
HIGHLIGHT_CLASS = "highlight"
SKIPPED_TAGS = ("script", "style", "noscript", "template", "title")


def validate_config() -> None:
    """Validate configuration values."""
    if MATCH_WINDOW_SIZE <= 0:
        raise ConfigError("Invalid match window size")

    if not (0 < POLL_INTERVAL <= MAX_POLL_INTERVAL):
        raise ConfigError(
            f"Poll interval must be in (0, {MAX_POLL_INTERVAL}] seconds"
        )

    if LOOKAHEAD_MS < 0:
        raise ConfigError("Lookahead must be non-negative")

    if not 0.0 <= MIN_HIGHLIGHT_PROBABILITY <= 1.0:
        raise ConfigError("Minimum highlight probability must be within [0, 1]")

    if FALLBACK_POLICY not in FALLBACK_POLICIES:
        raise ConfigError(f"Unknown fallback policy: {FALLBACK_POLICY}")


# Validate config on import
validate_config()


@dataclass
class AlignmentSettings:
    """Per-pairing tuning values; defaults come from the module constants."""

    window_size: int = MATCH_WINDOW_SIZE
    word_weight: float = WORD_WEIGHT
    context_weight: float = CONTEXT_WEIGHT
    overlap_weight: float = OVERLAP_WEIGHT
    positional_weight: float = POSITIONAL_WEIGHT
    exact_match_threshold: float = EXACT_MATCH_THRESHOLD
    context_match_threshold: float = CONTEXT_MATCH_THRESHOLD
    min_highlight_probability: float = MIN_HIGHLIGHT_PROBABILITY
    lookahead_ms: int = LOOKAHEAD_MS
    words_per_second: float = WORDS_PER_SECOND
    gap_words_per_second: float = GAP_WORDS_PER_SECOND
    silence_gap: float = SILENCE_GAP
    end_guard: float = END_GUARD
    poll_interval: float = POLL_INTERVAL
    fallback_policy: str = FALLBACK_POLICY
    paragraph_min_probability: float = PARAGRAPH_MIN_PROBABILITY
    paragraph_context_window: int = PARAGRAPH_CONTEXT_WINDOW
    paragraph_direct_weight: float = PARAGRAPH_DIRECT_WEIGHT
    min_window_coverage: float = MIN_WINDOW_COVERAGE

    @property
    def lookahead(self) -> float:
        """Lookahead in seconds."""
        return self.lookahead_ms / 1000.0

    def validate(self) -> "AlignmentSettings":
        if self.window_size <= 0:
            raise ConfigError("window_size must be positive")
        for name in (
            "word_weight",
            "context_weight",
            "overlap_weight",
            "positional_weight",
            "exact_match_threshold",
            "context_match_threshold",
            "min_highlight_probability",
            "paragraph_min_probability",
            "paragraph_direct_weight",
            "min_window_coverage",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{name} must be within [0, 1], got {value}")
        if abs(self.word_weight + self.context_weight - 1.0) > 1e-9:
            raise ConfigError("word_weight and context_weight must sum to 1")
        if abs(self.overlap_weight + self.positional_weight - 1.0) > 1e-9:
            raise ConfigError("overlap_weight and positional_weight must sum to 1")
        if self.lookahead_ms < 0:
            raise ConfigError("lookahead_ms must be non-negative")
        if self.words_per_second <= 0 or self.gap_words_per_second <= 0:
            raise ConfigError("Words-per-second estimates must be positive")
        if self.silence_gap < 0 or self.end_guard < 0:
            raise ConfigError("silence_gap and end_guard must be non-negative")
        if not (0 < self.poll_interval <= MAX_POLL_INTERVAL):
            raise ConfigError(
                f"poll_interval must be in (0, {MAX_POLL_INTERVAL}] seconds"
            )
        if self.fallback_policy not in FALLBACK_POLICIES:
            raise ConfigError(f"Unknown fallback policy: {self.fallback_policy}")
        low, high = PARAGRAPH_CONTEXT_WINDOW_RANGE
        if not low <= self.paragraph_context_window <= high:
            raise ConfigError(
                f"paragraph_context_window must be between {low} and {high}"
            )
        return self

    @classmethod
    def from_dict(cls, data: dict) -> "AlignmentSettings":
        """Build settings from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known}).validate()
