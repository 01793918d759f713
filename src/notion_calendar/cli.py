"""CLI for notion-calendar: print the feed, sync IDs, create tickets, serve the API."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import asyncpg
import click

from notion_calendar import __version__
from notion_calendar.config import (
    CalendarDatabases,
    LoggingConfig,
    TicketDatabases,
    counter_name,
    notion_token,
)
from notion_calendar.core.counter import SequenceAllocator
from notion_calendar.core.logging import Job, configure_logging
from notion_calendar.db import Database
from notion_calendar.errors import NotionCalendarError, TicketValidationError
from notion_calendar.events import CalendarEvent, fetch_calendar_events
from notion_calendar.global_ids import GlobalIdSyncResult, sync_global_ids
from notion_calendar.notion.client import NotionClient
from notion_calendar.tickets import CreatedTicket, TicketType, create_ticket

logger = logging.getLogger(__name__)

# Counter database unreachable or rejecting the allocator.
_DATABASE_ERRORS = (asyncpg.PostgresError, OSError)


def _configure_logging(job: Job) -> None:
    settings = LoggingConfig.from_env()
    configure_logging(level=settings.level, fmt=settings.format, job=job)


def _fail(exc: Exception) -> None:
    click.echo(f"Error: {exc}", err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """notion-calendar: Notion scheduling feed and global ticket identifiers."""


# ---------------------------------------------------------------------------
# events
# ---------------------------------------------------------------------------


async def _fetch_events() -> list[CalendarEvent]:
    databases = CalendarDatabases.from_env()
    async with NotionClient(notion_token()) as client:
        return await fetch_calendar_events(client, databases)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print the feed as JSON")
def events(as_json: bool) -> None:
    """Fetch and print the merged calendar feed."""
    _configure_logging(Job.calendar)
    try:
        feed = asyncio.run(_fetch_events())
    except NotionCalendarError as exc:
        _fail(exc)
        return

    if as_json:
        click.echo(json.dumps([event.to_feed_item() for event in feed], ensure_ascii=False))
        return
    for event in feed:
        span = f"{event.start} → {event.end}" if event.end else event.start
        click.echo(f"{span:<45} {event.title}")
    click.echo(f"{len(feed)} event(s)")


# ---------------------------------------------------------------------------
# sync-global-ids
# ---------------------------------------------------------------------------


async def _sync(limit: int | None) -> GlobalIdSyncResult:
    database_ids = TicketDatabases.from_env().sync_targets()
    token = notion_token()
    database = Database.from_env()
    pool = await database.connect()
    try:
        async with NotionClient(token) as client:
            return await sync_global_ids(
                client,
                SequenceAllocator(pool, counter_name()),
                database_ids,
                limit_per_database=limit,
            )
    finally:
        await database.close()


@cli.command("sync-global-ids")
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=None,
    help="Examine at most this many records per database",
)
def sync_global_ids_command(limit: int | None) -> None:
    """Assign missing KM identifiers and backfill stale ones."""
    _configure_logging(Job.global_id_sync)
    try:
        result = asyncio.run(_sync(limit))
    except (NotionCalendarError, *_DATABASE_ERRORS) as exc:
        _fail(exc)
        return
    click.echo(json.dumps(result.to_dict(), ensure_ascii=False))


# ---------------------------------------------------------------------------
# create-ticket
# ---------------------------------------------------------------------------


async def _create(payload: dict) -> CreatedTicket:
    databases = TicketDatabases.from_env()
    token = notion_token()
    database = Database.from_env()
    pool = await database.connect()
    try:
        async with NotionClient(token) as client:
            return await create_ticket(
                client,
                SequenceAllocator(pool, counter_name()),
                databases,
                payload,
            )
    finally:
        await database.close()


@cli.command("create-ticket")
@click.option(
    "--type",
    "ticket_type",
    required=True,
    type=click.Choice([member.value for member in TicketType]),
)
@click.option("--title", required=True)
@click.option("--status", default=None)
@click.option("--priority", default=None)
@click.option("--description", default=None)
@click.option("--assignee", "assignee_ids", multiple=True, help="Notion user id (repeatable)")
@click.option("--project", "project_ids", multiple=True, help="Project page id (repeatable)")
@click.option("--sprint", "sprint_ids", multiple=True, help="Sprint page id (repeatable)")
@click.option("--parent", "parent_ids", multiple=True, help="Parent page id (repeatable)")
@click.option("--due", "due_date_start", default=None, help="Due date (ISO-8601)")
@click.option("--due-end", "due_date_end", default=None, help="Due date range end")
def create_ticket_command(ticket_type: str, title: str, **fields) -> None:
    """Create a ticket with a freshly minted global identifier."""
    _configure_logging(Job.tickets)
    payload = {"type": ticket_type, "title": title}
    for key, value in fields.items():
        payload[key] = list(value) if isinstance(value, tuple) else value
    try:
        created = asyncio.run(_create(payload))
    except (NotionCalendarError, TicketValidationError, *_DATABASE_ERRORS) as exc:
        _fail(exc)
        return
    click.echo(json.dumps(created.to_response(), ensure_ascii=False))


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
def serve(host: str, port: int) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from notion_calendar.api.app import create_app

    _configure_logging(Job.api)
    uvicorn.run(create_app(), host=host, port=port, log_config=None)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
