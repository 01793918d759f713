"""Assign and backfill ``KM-<n>`` identifiers on ticket databases.

A record's identifier may live in two places: a rich-text property (one of
:data:`GLOBAL_ID_PROPERTY_CANDIDATES`) and a ``[KM-<n>]`` prefix on its title.
:func:`sync_global_ids` walks every configured database, mints identifiers
for records that have none, and rewrites whichever location is missing or
stale for records that already have one.

Databases and records are processed one at a time. A failure stops the run
and propagates; writes made before it are kept.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from notion_calendar.notion.client import NotionClient
from notion_calendar.notion.extract import UNTITLED, read_title_text
from notion_calendar.notion.models import DatabaseSchema, NotionPage, RichTextValue
from notion_calendar.notion.payloads import rich_text_payload, title_payload

logger = logging.getLogger(__name__)

GLOBAL_ID_PROPERTY_CANDIDATES: tuple[str, ...] = ("Global ID", "글로벌 ID", "표시용 ID")

_TITLE_GLOBAL_ID_PATTERN = re.compile(r"^\[(KM-\d+)\]\s*", re.ASCII)
_TEXT_GLOBAL_ID_PATTERN = re.compile(r"\b(KM-\d+)\b", re.ASCII)


class GlobalIdMinter(Protocol):
    """Anything that can mint a fresh ``KM-<n>`` identifier."""

    async def next_global_id(self) -> str: ...


@dataclass
class GlobalIdSyncResult:
    """Aggregate counts of one reconciliation run."""

    scanned: int = 0
    assigned: int = 0
    backfilled: int = 0
    database_count: int = 0
    processed_database_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scanned": self.scanned,
            "assigned": self.assigned,
            "backfilled": self.backfilled,
            "databaseCount": self.database_count,
            "processedDatabaseIds": list(self.processed_database_ids),
        }


def read_global_id_from_title(title: str) -> str | None:
    """Return the identifier of a ``[KM-<n>]`` title prefix, if any."""
    match = _TITLE_GLOBAL_ID_PATTERN.match(title)
    return match.group(1) if match else None


def read_global_id_from_text(text: str) -> str | None:
    """Return the first whole-token ``KM-<n>`` found in *text*, if any."""
    match = _TEXT_GLOBAL_ID_PATTERN.search(text)
    return match.group(1) if match else None


def strip_global_id_prefix(title: str) -> str:
    return _TITLE_GLOBAL_ID_PATTERN.sub("", title, count=1).strip()


def prefix_title(global_id: str, raw_title: str) -> str:
    """Render ``[KM-<n>] <title>``, replacing any existing identifier prefix."""
    title = strip_global_id_prefix(raw_title) or UNTITLED
    return f"[{global_id}] {title}"


def find_global_id_property(schema: DatabaseSchema) -> str | None:
    """Name of the rich-text property holding identifiers, if the database has one."""
    return schema.first_of_type(GLOBAL_ID_PROPERTY_CANDIDATES, "rich_text")


def _rich_text(page: NotionPage, name: str) -> str:
    value = page.properties.get(name)
    return value.text if isinstance(value, RichTextValue) else ""


@dataclass
class _RecordPlan:
    """Pending writes for one record and how they should be counted."""

    updates: dict[str, Any]
    assigned_id: str | None = None


async def _plan_record(
    page: NotionPage,
    *,
    title_property: str,
    global_id_property: str | None,
    minter: GlobalIdMinter,
    minted_this_run: set[str],
) -> _RecordPlan:
    current_title = read_title_text(page.properties.get(title_property))
    title_id = read_global_id_from_title(current_title)
    property_id = (
        read_global_id_from_text(_rich_text(page, global_id_property))
        if global_id_property
        else None
    )
    existing = property_id or title_id

    if existing:
        if property_id is None and title_id in minted_this_run:
            logger.warning(
                "Page %s carries title identifier %s that was minted earlier in this run",
                page.id,
                title_id,
            )
        updates: dict[str, Any] = {}
        if title_id != existing:
            updates[title_property] = title_payload(prefix_title(existing, current_title))
        if global_id_property and property_id != existing:
            updates[global_id_property] = rich_text_payload(existing)
        return _RecordPlan(updates=updates)

    global_id = await minter.next_global_id()
    updates = {title_property: title_payload(prefix_title(global_id, current_title))}
    if global_id_property:
        updates[global_id_property] = rich_text_payload(global_id)
    return _RecordPlan(updates=updates, assigned_id=global_id)


async def sync_global_ids(
    client: NotionClient,
    minter: GlobalIdMinter,
    database_ids: Sequence[str],
    *,
    limit_per_database: int | None = None,
) -> GlobalIdSyncResult:
    """Reconcile global identifiers across *database_ids*.

    ``limit_per_database`` caps how many records are examined per database;
    values that are not positive mean no cap.
    """
    result = GlobalIdSyncResult(
        database_count=len(database_ids),
        processed_database_ids=list(database_ids),
    )
    minted_this_run: set[str] = set()
    cap = limit_per_database if limit_per_database and limit_per_database > 0 else None

    try:
        for database_id in database_ids:
            schema = await client.retrieve_database(database_id)
            title_property = schema.title_property()
            global_id_property = find_global_id_property(schema)
            if global_id_property is None:
                logger.info(
                    "Database %s has no global ID property; only titles will be updated",
                    database_id,
                )

            pages = await client.query_database(database_id)
            if cap is not None:
                pages = pages[:cap]
            result.scanned += len(pages)

            for page in pages:
                plan = await _plan_record(
                    page,
                    title_property=title_property,
                    global_id_property=global_id_property,
                    minter=minter,
                    minted_this_run=minted_this_run,
                )
                if not plan.updates:
                    continue
                await client.update_page(page.id, plan.updates)
                if plan.assigned_id is not None:
                    minted_this_run.add(plan.assigned_id)
                    result.assigned += 1
                    logger.info("Assigned %s to page %s", plan.assigned_id, page.id)
                else:
                    result.backfilled += 1
                    logger.info("Backfilled global ID on page %s", page.id)
    except Exception as exc:
        logger.error(
            "Global ID sync aborted after scanned=%d assigned=%d backfilled=%d",
            result.scanned,
            result.assigned,
            result.backfilled,
        )
        exc.add_note(
            f"global ID sync partial result: scanned={result.scanned} "
            f"assigned={result.assigned} backfilled={result.backfilled}"
        )
        raise

    logger.info(
        "Global ID sync finished: scanned=%d assigned=%d backfilled=%d databases=%d",
        result.scanned,
        result.assigned,
        result.backfilled,
        result.database_count,
    )
    return result
