"""Utility modules."""

from .logging import setup_logging
from .validation import (
    validate_offset_ms,
    validate_probability,
    validate_time,
    validate_window_size,
    validate_step,
)

__all__ = [
    "setup_logging",
    "validate_offset_ms",
    "validate_probability",
    "validate_time",
    "validate_window_size",
    "validate_step",
]
