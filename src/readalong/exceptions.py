"""Custom exceptions for ReadAlong."""

class ReadAlongError(Exception):
    """Base exception for ReadAlong."""
    pass

class ConfigError(ReadAlongError):
    """Invalid configuration values."""
    pass

class ValidationError(ReadAlongError):
    """Invalid input parameters."""
    pass

class TranscriptError(ReadAlongError):
    """Error reading or normalizing a timed transcript."""
    pass

class DocumentError(ReadAlongError):
    """Error locating or tokenizing the rendered document."""
    pass
