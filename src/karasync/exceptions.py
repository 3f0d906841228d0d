"""Custom exceptions for karasync."""

class KaraSyncError(Exception):
    """Base exception for karasync."""
    pass

class ConfigError(KaraSyncError):
    """Invalid configuration value."""
    pass

class TimelineError(KaraSyncError):
    """Malformed lyric source data."""
    pass

class MeasurementError(KaraSyncError):
    """Text could not be measured with the requested font."""
    pass

class ValidationError(KaraSyncError):
    """Invalid input parameters."""
    pass
