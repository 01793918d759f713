"""Ticket creation endpoint, mounted at ``/api/tickets``."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from notion_calendar.api.deps import get_minter, get_server_notion_client, get_ticket_databases
from notion_calendar.api.models import CreateTicketResponse
from notion_calendar.config import TicketDatabases
from notion_calendar.core.counter import SequenceAllocator
from notion_calendar.core.logging import Job, job_scope
from notion_calendar.errors import TicketValidationError
from notion_calendar.notion.client import NotionClient
from notion_calendar.tickets import CreateTicketRequest, create_ticket

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tickets", tags=["tickets"])


async def _ticket_request(request: Request) -> CreateTicketRequest:
    """Validate the JSON body before any other dependency runs."""
    try:
        body = await request.json()
    except ValueError as exc:
        raise TicketValidationError("Request body must be a JSON object.") from exc
    return CreateTicketRequest.parse(body)


@router.post("/create", response_model=CreateTicketResponse)
async def create_ticket_endpoint(
    ticket: CreateTicketRequest = Depends(_ticket_request),
    databases: TicketDatabases = Depends(get_ticket_databases),
    client: NotionClient = Depends(get_server_notion_client),
    minter: SequenceAllocator = Depends(get_minter),
) -> CreateTicketResponse:
    """Mint a global identifier and create the ticket page."""
    with job_scope(Job.tickets):
        created = await create_ticket(client, minter, databases, ticket)
    return CreateTicketResponse(
        global_id=created.global_id,
        page_id=created.record_id,
        page_url=created.record_url,
        database_id=created.database_id,
    )
