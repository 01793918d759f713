"""Scheduled global-ID sync endpoint.

Mounted at ``/api/cron/sync-global-ids`` for both GET and POST so that
schedulers issuing either verb can trigger it. When ``CRON_SECRET`` is set,
callers must send ``Authorization: Bearer <secret>``.
"""

from __future__ import annotations

import logging
import math
import secrets
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Header, HTTPException

from notion_calendar.api.deps import get_minter, get_server_notion_client, get_ticket_databases
from notion_calendar.api.models import GlobalIdSyncResponse
from notion_calendar.config import TicketDatabases, cron_secret
from notion_calendar.core.counter import SequenceAllocator
from notion_calendar.core.logging import Job, job_scope
from notion_calendar.global_ids import sync_global_ids
from notion_calendar.notion.client import NotionClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"])


def is_authorized(authorization: str | None, secret: str | None) -> bool:
    if not secret:
        return True
    if not authorization:
        return False
    return secrets.compare_digest(authorization, f"Bearer {secret}")


def require_cron_secret(authorization: str | None = Header(default=None)) -> None:
    if not is_authorized(authorization, cron_secret()):
        raise HTTPException(status_code=401, detail="Unauthorized")


def parse_limit(raw: str | None) -> int | None:
    """Parse the ``limit`` query value; anything not a positive number is ignored."""
    if not raw:
        return None
    try:
        parsed = float(raw)
    except ValueError:
        return None
    if not math.isfinite(parsed) or parsed <= 0:
        return None
    # Fractions below one floor to zero, which means no limit.
    return math.floor(parsed) or None


@router.api_route(
    "/sync-global-ids",
    methods=["GET", "POST"],
    response_model=GlobalIdSyncResponse,
    dependencies=[Depends(require_cron_secret)],
)
async def run_global_id_sync(
    limit: str | None = None,
    databases: TicketDatabases = Depends(get_ticket_databases),
    client: NotionClient = Depends(get_server_notion_client),
    minter: SequenceAllocator = Depends(get_minter),
) -> GlobalIdSyncResponse:
    """Assign missing global identifiers and backfill stale ones."""
    with job_scope(Job.global_id_sync):
        result = await sync_global_ids(
            client,
            minter,
            databases.sync_targets(),
            limit_per_database=parse_limit(limit),
        )
    return GlobalIdSyncResponse(
        scanned=result.scanned,
        assigned=result.assigned,
        backfilled=result.backfilled,
        database_count=result.database_count,
        processed_database_ids=result.processed_database_ids,
        synced_at=datetime.now(UTC).isoformat(),
    )
