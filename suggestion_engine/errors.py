"""
Suggestion Engine Errors - Exception taxonomy for the suggestion engine.

None of these errors is fatal to the host application:

- OffsetDriftError: suggestion text no longer found in the document (dropped)
- MalformedRangeError: range fails bounds checks (skipped during mapping)
- StaleBatchError: batch computed for content that has since changed (discarded)
- SourceFetchError: the suggestion source call failed (surfaced to the caller)
"""

from typing import Any, Dict, Optional


class SuggestionEngineError(Exception):
    """Base exception for suggestion engine errors."""


class OffsetDriftError(SuggestionEngineError):
    """Raised when a suggestion's text cannot be located in the current content."""

    def __init__(self, message: str, *, suggestion_id: Optional[str] = None, text: str = ""):
        super().__init__(message)
        self.suggestion_id = suggestion_id
        self.text = text


class MalformedRangeError(SuggestionEngineError):
    """Raised when a flat-text range fails its bounds invariants."""

    def __init__(self, message: str, *, start: Optional[int] = None, end: Optional[int] = None):
        super().__init__(message)
        self.start = start
        self.end = end


class StaleBatchError(SuggestionEngineError):
    """Raised when a batch was computed for a content snapshot that is no longer current."""

    def __init__(self, message: str, *, expected: Optional[str] = None, actual: Optional[str] = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class SourceFetchError(SuggestionEngineError):
    """Raised when the suggestion source cannot be reached or returns garbage."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details or {}
