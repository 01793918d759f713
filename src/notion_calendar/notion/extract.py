"""Field extractors over :class:`NotionPage` property bags.

Every extractor reads only; a missing property or one of the wrong type is
treated as absent rather than as an error.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import NamedTuple

from notion_calendar.notion.models import (
    DateValue,
    NotionPage,
    PropertyValue,
    RichTextValue,
    TitleValue,
)

UNTITLED = "Untitled"
_DATE_ONLY_LENGTH = 10


class DateRange(NamedTuple):
    start: str | None = None
    end: str | None = None


def is_date_only(value: str) -> bool:
    """True when *value* is a plain calendar date (``YYYY-MM-DD``)."""
    return len(value) == _DATE_ONLY_LENGTH


def to_exclusive_end(value: str) -> str:
    """Advance a date-only string by one UTC calendar day.

    Calendar widgets treat all-day end dates as exclusive while Notion stores
    them inclusively. Date-time strings are returned unchanged.
    """
    if not is_date_only(value):
        return value
    return (date.fromisoformat(value) + timedelta(days=1)).isoformat()


def read_date(page: NotionPage, name: str) -> DateRange:
    """Return the start/end of a date property, or an empty range."""
    value = page.properties.get(name)
    if not isinstance(value, DateValue):
        return DateRange()
    return DateRange(value.start, value.end)


def read_date_range(
    page: NotionPage,
    range_property: str,
    legacy_start: str | None = None,
    legacy_end: str | None = None,
) -> DateRange:
    """Resolve a date range, preferring the combined range property.

    Older records only populated separate start/end properties. When the
    range property has no start, the legacy pair is consulted. The legacy
    end contributes its own end, else its start; with no legacy end at all,
    the legacy start is used as the end too.
    """
    combined = read_date(page, range_property)
    if combined.start:
        return combined

    start_value = read_date(page, legacy_start) if legacy_start else DateRange()
    end_value = read_date(page, legacy_end) if legacy_end else DateRange()
    start = start_value.start or end_value.start
    return DateRange(start=start, end=end_value.end or end_value.start or start)


def read_plain_text(value: PropertyValue | None) -> str | None:
    """Flatten a rich-text value, or None if absent, mistyped, or blank."""
    if not isinstance(value, RichTextValue):
        return None
    return value.text or None


def read_title_text(value: PropertyValue | None) -> str:
    """Flatten a title value; empty string when absent or mistyped."""
    if not isinstance(value, TitleValue):
        return ""
    return value.text


def read_title(page: NotionPage, preferred: str) -> str:
    """Return the page title, falling back to any other title property.

    The fallback scans properties in lexicographic order of name so the
    result does not depend on the order Notion returned them in.
    """
    title = read_title_text(page.properties.get(preferred))
    if title:
        return title
    for name in sorted(page.properties):
        title = read_title_text(page.properties[name])
        if title:
            return title
    return UNTITLED
