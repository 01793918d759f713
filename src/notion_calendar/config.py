"""Environment-driven configuration.

All settings come from process environment variables. Blank values are
treated the same as unset ones.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from notion_calendar.errors import ConfigurationError

DEFAULT_COUNTER_NAME = "km_ticket"
_LOG_FORMATS = {"text", "json"}


def _optional(name: str) -> str | None:
    value = os.environ.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _required(name: str) -> str:
    value = _optional(name)
    if value is None:
        raise ConfigurationError(f"Missing required env: {name}")
    return value


@dataclass(frozen=True)
class CalendarDatabases:
    """Notion database ids feeding the calendar."""

    projects_db_id: str
    issues_db_id: str
    sprints_db_id: str
    releases_db_id: str

    @classmethod
    def from_env(cls) -> CalendarDatabases:
        return cls(
            projects_db_id=_required("NOTION_PROJECTS_DB_ID"),
            issues_db_id=_required("NOTION_ISSUES_DB_ID"),
            sprints_db_id=_required("NOTION_SPRINTS_DB_ID"),
            releases_db_id=_required("NOTION_RELEASES_DB_ID"),
        )


@dataclass(frozen=True)
class TicketDatabases:
    """Notion database ids that hold tickets (and carry global identifiers).

    Only the issues database is mandatory; stories and epics fall back to it
    when creating tickets.
    """

    issues_db_id: str | None = None
    stories_db_id: str | None = None
    epics_db_id: str | None = None

    @classmethod
    def from_env(cls) -> TicketDatabases:
        return cls(
            issues_db_id=_optional("NOTION_ISSUES_DB_ID"),
            stories_db_id=_optional("NOTION_STORIES_DB_ID"),
            epics_db_id=_optional("NOTION_EPICS_DB_ID"),
        )

    def sync_targets(self) -> list[str]:
        """Return the de-duplicated database ids scanned by global-ID sync."""
        targets: list[str] = []
        for value in (self.issues_db_id, self.stories_db_id, self.epics_db_id):
            if value and value.strip() and value not in targets:
                targets.append(value)
        if not targets:
            raise ConfigurationError("Missing required env: NOTION_ISSUES_DB_ID")
        return targets

    def for_type(self, ticket_type: str) -> str:
        """Resolve the database a ticket of *ticket_type* is created in."""
        typed = {
            "Epic": self.epics_db_id,
            "Story": self.stories_db_id,
            "Issue": self.issues_db_id,
        }.get(ticket_type)
        if typed:
            return typed
        if self.issues_db_id:
            return self.issues_db_id
        raise ConfigurationError("Missing required env: NOTION_ISSUES_DB_ID")


@dataclass
class LoggingConfig:
    """Logging settings read from NOTION_CALENDAR_LOG_* variables."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"

    @classmethod
    def from_env(cls) -> LoggingConfig:
        level = (_optional("NOTION_CALENDAR_LOG_LEVEL") or "INFO").upper()
        fmt = (_optional("NOTION_CALENDAR_LOG_FORMAT") or "text").lower()
        if fmt not in _LOG_FORMATS:
            raise ConfigurationError(
                f"NOTION_CALENDAR_LOG_FORMAT must be one of {sorted(_LOG_FORMATS)}, got {fmt!r}"
            )
        return cls(level=level, format=fmt)


def notion_token() -> str:
    """Return the integration token used for server-side Notion calls."""
    return _required("NOTION_TOKEN")


def optional_notion_token() -> str | None:
    return _optional("NOTION_TOKEN")


def counter_name() -> str:
    """Name of the global counter row used to mint ``KM-<n>`` identifiers."""
    return _optional("GLOBAL_COUNTER_NAME") or DEFAULT_COUNTER_NAME


def cron_secret() -> str | None:
    return _optional("CRON_SECRET")
