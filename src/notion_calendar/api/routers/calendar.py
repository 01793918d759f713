"""Calendar feed endpoint.

Provides a single router mounted at ``/api/calendar``.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request

from notion_calendar.api.deps import get_calendar_databases, get_http_client
from notion_calendar.api.models import CalendarEventsResponse
from notion_calendar.config import CalendarDatabases, optional_notion_token
from notion_calendar.core.logging import Job, job_scope
from notion_calendar.events import fetch_calendar_events
from notion_calendar.notion.client import NotionClient

logger = logging.getLogger(__name__)

# Set by the OAuth callback, which lives outside this service.
ACCESS_TOKEN_COOKIE = "notion_access_token"

router = APIRouter(prefix="/api/calendar", tags=["calendar"])


def _resolve_access_token(request: Request) -> str:
    token = optional_notion_token() or request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="Missing NOTION_TOKEN. Set it in .env.local.")
    return token


@router.get("/events", response_model=CalendarEventsResponse)
async def list_calendar_events(
    request: Request,
    databases: CalendarDatabases = Depends(get_calendar_databases),
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> CalendarEventsResponse:
    """Return the merged calendar feed, ordered by start."""
    client = NotionClient(_resolve_access_token(request), http_client=http_client)
    with job_scope(Job.calendar):
        events = await fetch_calendar_events(client, databases)
    return CalendarEventsResponse(
        events=[event.to_feed_item() for event in events],
        generated_at=datetime.now(UTC).isoformat(),
    )
