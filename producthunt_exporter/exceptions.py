"""
Error taxonomy for the export pipeline.

Every failure that can end an export is an ``ExportError`` carrying a
machine-readable ``code`` so the transports (buffered HTTP, SSE stream, CLI)
can map it to a status code or a terminal ``error`` event.
"""

from typing import Optional


class ExportError(Exception):
    """Base class for errors that terminate an export run."""

    code = "export_error"

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(self.message)


class ConfigurationError(ExportError):
    """A required setting (the API access token) is missing."""

    code = "configuration_error"


class InvalidInputError(ExportError):
    """The requested date is missing or not a valid YYYY-MM-DD string."""

    code = "invalid_input"


class UpstreamError(ExportError):
    """The Product Hunt API answered with an error status or a GraphQL error payload."""

    code = "upstream_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[str] = None,
    ):
        super().__init__(message, details=details)
        self.status_code = status_code


class ThrottledError(UpstreamError):
    """HTTP 429 that survived every retry the page fetcher was allowed."""

    code = "throttled"


class NoPostsFoundError(ExportError):
    """No post matched the requested day. Not a system failure."""

    code = "not_found"

    def __init__(self, date_str: str):
        super().__init__(f"No posts were found for the selected date ({date_str})")
        self.date = date_str


class ExportCancelled(ExportError):
    """The client went away or the caller's timeout elapsed."""

    code = "cancelled"
