"""Validation utilities."""

import logging
import math

from ..config import MAX_OFFSET_MS, PARAGRAPH_CONTEXT_WINDOW_RANGE
from ..exceptions import ValidationError

logger = logging.getLogger(__name__)


def validate_offset_ms(offset_ms: int) -> int:
    """Validate transcript timing offset in milliseconds."""
    if abs(offset_ms) > MAX_OFFSET_MS:
        raise ValidationError(
            f"Timing offset must be between -{MAX_OFFSET_MS} and +{MAX_OFFSET_MS} ms"
        )
    return offset_ms


def validate_probability(value: float) -> float:
    """Validate a probability threshold."""
    if not 0.0 <= value <= 1.0:
        raise ValidationError("Probability must be between 0 and 1")
    return value


def validate_time(value: float) -> float:
    """Validate a playback position in seconds."""
    if not math.isfinite(value) or value < 0:
        raise ValidationError(f"Invalid playback time: {value}")
    return value


def validate_window_size(size: int) -> int:
    """Validate a paragraph context window size."""
    low, high = PARAGRAPH_CONTEXT_WINDOW_RANGE
    if not low <= size <= high:
        raise ValidationError(f"Context window must be between {low} and {high}")
    return size


def validate_step(step: float) -> float:
    """Validate a simulation step in seconds."""
    if not math.isfinite(step) or step <= 0:
        raise ValidationError("Step must be a positive number of seconds")
    if step > 1.0:
        logger.warning(
            "Step of %.2fs is much longer than a typical word; highlights will jump",
            step,
        )
    return step
