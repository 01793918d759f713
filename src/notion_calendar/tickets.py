"""Create Epic/Story/Issue tickets carrying a freshly minted global identifier.

Optional fields are mapped onto whatever the target database supports.
Fields whose property is missing, has an unexpected type, or (for selects)
lacks the requested option are left out of the write rather than failing it.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from notion_calendar.config import TicketDatabases
from notion_calendar.errors import TicketValidationError
from notion_calendar.global_ids import GLOBAL_ID_PROPERTY_CANDIDATES, GlobalIdMinter
from notion_calendar.notion.client import NotionClient
from notion_calendar.notion.models import DatabaseSchema
from notion_calendar.notion.payloads import (
    date_payload,
    people_payload,
    relation_payload,
    rich_text_payload,
    select_payload,
    title_payload,
)

logger = logging.getLogger(__name__)

DESCRIPTION_PROPERTY_CANDIDATES = ("Description", "설명")
DUE_DATE_PROPERTY_CANDIDATES = ("Due Date", "기간")
PARENT_FALLBACK_PROPERTY = "Parent Issue"


class TicketType(StrEnum):
    epic = "Epic"
    story = "Story"
    issue = "Issue"


# Parent relation preferred for each ticket type, ahead of the generic fallback.
_PARENT_PROPERTY_BY_TYPE: dict[TicketType, str] = {
    TicketType.story: "Epic",
    TicketType.issue: "Story",
}


class CreateTicketRequest(BaseModel):
    """Caller input for ticket creation; accepts camelCase keys as well."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: TicketType
    title: str
    status: str | None = None
    priority: str | None = None
    description: str | None = None
    assignee_ids: list[str] = Field(default_factory=list, alias="assigneeIds")
    project_ids: list[str] = Field(default_factory=list, alias="projectIds")
    sprint_ids: list[str] = Field(default_factory=list, alias="sprintIds")
    parent_ids: list[str] = Field(default_factory=list, alias="parentIds")
    due_date_start: str | None = Field(default=None, alias="dueDateStart")
    due_date_end: str | None = Field(default=None, alias="dueDateEnd")

    @field_validator("title")
    @classmethod
    def _normalize_title(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("title is required.")
        return normalized

    @field_validator("assignee_ids", "project_ids", "sprint_ids", "parent_ids", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @classmethod
    def parse(cls, payload: Any) -> CreateTicketRequest:
        """Validate raw input, raising :class:`TicketValidationError`."""
        if isinstance(payload, CreateTicketRequest):
            return payload
        if not isinstance(payload, dict):
            raise TicketValidationError("Request body must be a JSON object.")
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise TicketValidationError(_validation_message(exc)) from exc


def _validation_message(exc: ValidationError) -> str:
    for error in exc.errors():
        location = error.get("loc") or ()
        field_name = str(location[0]) if location else ""
        if field_name == "type":
            return "type must be one of: Epic, Story, Issue."
        if field_name == "title":
            return "title is required."
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc") or ())
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


class CreatedTicket(BaseModel):
    model_config = ConfigDict(frozen=True)

    global_id: str
    record_id: str
    record_url: str
    database_id: str

    def to_response(self) -> dict[str, str]:
        return {
            "globalId": self.global_id,
            "pageId": self.record_id,
            "pageUrl": self.record_url,
            "databaseId": self.database_id,
        }


def build_ticket_properties(
    schema: DatabaseSchema,
    request: CreateTicketRequest,
    global_id: str,
) -> dict[str, Any]:
    """Map a ticket request onto the properties *schema* supports."""
    properties: dict[str, Any] = {
        schema.title_property(): title_payload(f"[{global_id}] {request.title}"),
    }

    global_id_property = schema.first_existing(GLOBAL_ID_PROPERTY_CANDIDATES)
    if global_id_property and schema.has(global_id_property, "rich_text"):
        properties[global_id_property] = rich_text_payload(global_id)

    if request.description:
        description_property = schema.first_existing(DESCRIPTION_PROPERTY_CANDIDATES)
        if description_property and schema.has(description_property, "rich_text"):
            properties[description_property] = rich_text_payload(request.description)

    if request.status and schema.select_allows("Status", request.status):
        properties["Status"] = select_payload(request.status)
    if request.priority and schema.select_allows("Priority", request.priority):
        properties["Priority"] = select_payload(request.priority)
    if schema.select_allows("Type", request.type.value):
        properties["Type"] = select_payload(request.type.value)

    if request.assignee_ids and schema.has("Assignee", "people"):
        properties["Assignee"] = people_payload(request.assignee_ids)
    if request.project_ids and schema.has("Project", "relation"):
        properties["Project"] = relation_payload(request.project_ids)
    if request.sprint_ids and schema.has("Sprint", "relation"):
        properties["Sprint"] = relation_payload(request.sprint_ids)

    if request.parent_ids:
        candidates = [PARENT_FALLBACK_PROPERTY]
        preferred = _PARENT_PROPERTY_BY_TYPE.get(request.type)
        if preferred:
            candidates.insert(0, preferred)
        parent_property = schema.first_existing(candidates)
        if parent_property and schema.has(parent_property, "relation"):
            properties[parent_property] = relation_payload(request.parent_ids)

    due_property = schema.first_existing(DUE_DATE_PROPERTY_CANDIDATES)
    if due_property and schema.has(due_property, "date") and request.due_date_start:
        properties[due_property] = date_payload(request.due_date_start, request.due_date_end)

    return properties


async def create_ticket(
    client: NotionClient,
    minter: GlobalIdMinter,
    databases: TicketDatabases,
    payload: CreateTicketRequest | dict[str, Any],
) -> CreatedTicket:
    """Validate, mint an identifier, and create the ticket page.

    The identifier is minted before the page is written. If the write fails
    the identifier stays consumed; identifiers are unique and increasing but
    not necessarily contiguous.
    """
    request = CreateTicketRequest.parse(payload)
    database_id = databases.for_type(request.type.value)

    global_id = await minter.next_global_id()
    schema = await client.retrieve_database(database_id)
    properties = build_ticket_properties(schema, request, global_id)
    skipped = _skipped_fields(request, properties)
    if skipped:
        logger.debug("Ticket %s: fields not supported by %s: %s", global_id, database_id, skipped)

    created = await client.create_page(database_id, properties)
    url = created.get("url")
    ticket = CreatedTicket(
        global_id=global_id,
        record_id=created["id"],
        record_url=url if isinstance(url, str) else "",
        database_id=database_id,
    )
    logger.info("Created %s ticket %s in database %s", request.type.value, global_id, database_id)
    return ticket


def _skipped_fields(request: CreateTicketRequest, properties: dict[str, Any]) -> list[str]:
    requested = {
        "status": (request.status, "Status"),
        "priority": (request.priority, "Priority"),
        "assignee_ids": (request.assignee_ids, "Assignee"),
        "project_ids": (request.project_ids, "Project"),
        "sprint_ids": (request.sprint_ids, "Sprint"),
    }
    return sorted(
        field_name
        for field_name, (value, property_name) in requested.items()
        if value and property_name not in properties
    )
