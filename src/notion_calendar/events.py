"""Calendar feed built from the project, issue, sprint, and release databases.

Each builder maps raw Notion pages of one database onto :class:`CalendarEvent`
values. Records without a usable date are skipped. The feed is rebuilt from
scratch on every fetch.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from notion_calendar.config import CalendarDatabases
from notion_calendar.notion.client import NotionClient
from notion_calendar.notion.extract import (
    is_date_only,
    read_date,
    read_date_range,
    read_plain_text,
    read_title,
    to_exclusive_end,
)
from notion_calendar.notion.models import NotionPage

logger = logging.getLogger(__name__)

# Property names used by the workspace databases. The combined range
# property ("기간", "period") replaced the older separate start/end dates.
RANGE_PROPERTY = "기간"
ISSUE_DUE_DATE_PROPERTY = "Due Date"
ISSUE_KEY_PROPERTY = "Issue Key"
ISSUE_TITLE_PROPERTY = "Title"
SPRINT_TITLE_PROPERTY = "Name"
SPRINT_LEGACY_START_PROPERTY = "Start Date"
SPRINT_LEGACY_END_PROPERTY = "End Date"
RELEASE_DATE_PROPERTY = "Release Date"
RELEASE_TITLE_PROPERTY = "Version"
PROJECT_TITLE_PROPERTY = "Name"
PROJECT_LEGACY_START_PROPERTY = "Start Date"
PROJECT_LEGACY_END_PROPERTY = "Target Date"


class EventSource(StrEnum):
    project = "project"
    issue = "issue"
    sprint = "sprint"
    release = "release"


SOURCE_COLORS: dict[EventSource, str] = {
    EventSource.project: "#7c3aed",
    EventSource.issue: "#ea580c",
    EventSource.sprint: "#2563eb",
    EventSource.release: "#059669",
}

# Secondary ordering used by the calendar view for events sharing a start.
SOURCE_DISPLAY_PRIORITY: dict[EventSource, int] = {
    EventSource.release: 0,
    EventSource.sprint: 1,
    EventSource.project: 2,
    EventSource.issue: 3,
}


class CalendarEvent(BaseModel):
    """One entry of the calendar feed; serializes with camelCase keys."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    title: str
    start: str
    end: str | None = None
    all_day: bool = Field(alias="allDay")
    source: EventSource
    notion_url: str = Field(alias="notionUrl")
    color: str

    def to_feed_item(self) -> dict[str, object]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


def _make_event(
    source: EventSource,
    page: NotionPage,
    *,
    title: str,
    start: str,
    end: str | None = None,
) -> CalendarEvent:
    return CalendarEvent(
        id=f"{source}-{page.id}",
        title=title,
        start=start,
        end=end,
        all_day=is_date_only(start),
        source=source,
        notion_url=page.url,
        color=SOURCE_COLORS[source],
    )


def _normalize_end(end: str | None, *, all_day: bool) -> str | None:
    if not end:
        return None
    return to_exclusive_end(end) if all_day else end


def _ranged_events(
    pages: Iterable[NotionPage],
    source: EventSource,
    *,
    label: str,
    title_property: str,
    legacy_start: str,
    legacy_end: str,
) -> list[CalendarEvent]:
    events: list[CalendarEvent] = []
    for page in pages:
        start, end = read_date_range(page, RANGE_PROPERTY, legacy_start, legacy_end)
        normalized_start = start or end
        if not normalized_start:
            continue
        # A lone bound is both start and end.
        normalized_end = end or normalized_start
        all_day = is_date_only(normalized_start)
        events.append(
            _make_event(
                source,
                page,
                title=f"[{label}] {read_title(page, title_property)}",
                start=normalized_start,
                end=_normalize_end(normalized_end, all_day=all_day),
            )
        )
    return events


def build_issue_events(pages: Iterable[NotionPage]) -> list[CalendarEvent]:
    events: list[CalendarEvent] = []
    for page in pages:
        due = read_date(page, ISSUE_DUE_DATE_PROPERTY)
        if not due.start:
            continue
        issue_key = read_plain_text(page.properties.get(ISSUE_KEY_PROPERTY))
        base_title = read_title(page, ISSUE_TITLE_PROPERTY)
        title = f"[Issue] {issue_key} {base_title}" if issue_key else f"[Issue] {base_title}"
        events.append(
            _make_event(
                EventSource.issue,
                page,
                title=title,
                start=due.start,
                end=_normalize_end(due.end, all_day=is_date_only(due.start)),
            )
        )
    return events


def build_sprint_events(pages: Iterable[NotionPage]) -> list[CalendarEvent]:
    return _ranged_events(
        pages,
        EventSource.sprint,
        label="Sprint",
        title_property=SPRINT_TITLE_PROPERTY,
        legacy_start=SPRINT_LEGACY_START_PROPERTY,
        legacy_end=SPRINT_LEGACY_END_PROPERTY,
    )


def build_release_events(pages: Iterable[NotionPage]) -> list[CalendarEvent]:
    events: list[CalendarEvent] = []
    for page in pages:
        release_date = read_date(page, RELEASE_DATE_PROPERTY).start
        if not release_date:
            continue
        events.append(
            _make_event(
                EventSource.release,
                page,
                title=f"[Release] {read_title(page, RELEASE_TITLE_PROPERTY)}",
                start=release_date,
            )
        )
    return events


def build_project_events(pages: Iterable[NotionPage]) -> list[CalendarEvent]:
    return _ranged_events(
        pages,
        EventSource.project,
        label="Project",
        title_property=PROJECT_TITLE_PROPERTY,
        legacy_start=PROJECT_LEGACY_START_PROPERTY,
        legacy_end=PROJECT_LEGACY_END_PROPERTY,
    )


def merge_events(*groups: Iterable[CalendarEvent]) -> list[CalendarEvent]:
    """Concatenate event groups and order them by ``start``.

    ISO-8601 strings sort chronologically under plain string comparison.
    The sort is stable, so ties keep the order the groups were given in.
    """
    merged = [event for group in groups for event in group]
    merged.sort(key=lambda event: event.start)
    return merged


def display_order(events: Iterable[CalendarEvent]) -> list[CalendarEvent]:
    """Order events for display: start, then source priority, then title."""
    return sorted(
        events,
        key=lambda event: (event.start, SOURCE_DISPLAY_PRIORITY[event.source], event.title),
    )


async def fetch_calendar_events(
    client: NotionClient,
    databases: CalendarDatabases,
) -> list[CalendarEvent]:
    """Query the four source databases concurrently and build the feed.

    A failure in any query fails the whole fetch; no partial feed is returned.
    """
    project_pages, issue_pages, sprint_pages, release_pages = await asyncio.gather(
        client.query_database(databases.projects_db_id),
        client.query_database(databases.issues_db_id),
        client.query_database(databases.sprints_db_id),
        client.query_database(databases.releases_db_id),
    )

    events = merge_events(
        build_project_events(project_pages),
        build_issue_events(issue_pages),
        build_sprint_events(sprint_pages),
        build_release_events(release_pages),
    )
    logger.info(
        "Built calendar feed: %d event(s) from %d page(s)",
        len(events),
        len(project_pages) + len(issue_pages) + len(sprint_pages) + len(release_pages),
    )
    return events
