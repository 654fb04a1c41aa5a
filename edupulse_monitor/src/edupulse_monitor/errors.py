"""
Monitoring Errors

Exception types raised by the teacher topic monitor.

Unknown subjects/topics are NOT an error: the vocabulary degrades to a broad
or empty keyword set and the session keeps running.
"""

from typing import Optional


class MonitoringError(Exception):
    """Base class for all monitoring errors."""


class SourceUnavailable(MonitoringError):
    """Transcription capability could not be acquired (non-fatal, simulation is used)."""


class SourceError(MonitoringError):
    """Mid-session failure reported by the transcript source."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause

    def to_dict(self) -> dict:
        return {
            "type": "source_error",
            "message": str(self),
            "cause": type(self.cause).__name__ if self.cause else None,
        }


class InvalidState(MonitoringError):
    """Operation invoked outside its valid lifecycle phase."""
