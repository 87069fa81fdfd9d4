"""Exception types raised by the writing-intelligence core."""

from __future__ import annotations


class IntelliPenError(Exception):
    """Base class for all intellipen errors."""


class AnalysisCancelledError(IntelliPenError):
    """A queued or debounced analysis request was cancelled before it ran."""


class AnalysisDroppedError(AnalysisCancelledError):
    """A queued analysis request was evicted because the queue was full."""


class InvalidRangeError(IntelliPenError, ValueError):
    """A suggestion's range does not fit the text it is applied to."""
