"""Error hierarchy shared by the calendar feed, ID sync, and ticket flows."""

from __future__ import annotations


class NotionCalendarError(RuntimeError):
    """Base error for notion_calendar."""


class ConfigurationError(NotionCalendarError):
    """Raised when a required identifier or credential is not configured."""


class NotionSchemaError(NotionCalendarError):
    """Raised when a Notion database lacks a property the workflow depends on."""


class NotionRequestError(NotionCalendarError):
    """Raised when a Notion API request fails."""

    operation = "request"

    def __init__(self, *, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Notion API {self.operation} failed ({status_code}): {message}")


class UpstreamQueryError(NotionRequestError):
    """Raised when reading from Notion (query/retrieve) fails."""

    operation = "query"


class UpstreamWriteError(NotionRequestError):
    """Raised when updating or creating a Notion page fails."""

    operation = "write"


class TicketValidationError(ValueError):
    """Raised for malformed ticket input, before any side effect."""
