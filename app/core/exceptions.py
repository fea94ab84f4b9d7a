"""Error taxonomy for the search pipeline.

Only ``SearchValidationError`` and ``SearchExecutionError`` are ever surfaced to
an HTTP client. The fallback, suggestion and analytics errors are recovered
where they happen and travel as ``Err`` values (see ``app.core.result``).
"""

from typing import Any


class StorageError(Exception):
    """A call to the Supabase REST API failed (transport error or non-2xx)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SearchError(Exception):
    """Base class for search pipeline errors."""


class SearchValidationError(SearchError):
    """Malformed request parameters. Rendered as HTTP 400."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.details = details if details is not None else message


class SearchExecutionError(SearchError):
    """The exact full-text stage itself failed. Rendered as HTTP 500."""


class FallbackExecutionError(SearchError):
    """The fuzzy stage failed after an empty exact stage."""


class SuggestionLookupError(SearchError):
    """The "did you mean" similarity lookup failed."""


class AnalyticsWriteError(SearchError):
    """Persisting a search analytics event failed."""
