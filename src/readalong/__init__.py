"""ReadAlong - word-level highlighting synchronized with narrated audio."""

__version__ = "0.3.0"
