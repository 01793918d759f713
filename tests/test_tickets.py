"""Tests for ticket creation."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from notion_calendar.config import TicketDatabases
from notion_calendar.errors import ConfigurationError, TicketValidationError, UpstreamWriteError
from notion_calendar.notion.client import NotionClient
from notion_calendar.notion.models import DatabaseSchema, SchemaProperty
from notion_calendar.notion.payloads import (
    date_payload,
    people_payload,
    relation_payload,
    rich_text_payload,
    select_payload,
    title_payload,
)
from notion_calendar.tickets import (
    CreatedTicket,
    CreateTicketRequest,
    TicketType,
    build_ticket_properties,
    create_ticket,
)

pytestmark = pytest.mark.unit

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _full_schema(database_id: str = "iss") -> DatabaseSchema:
    return DatabaseSchema(
        id=database_id,
        properties={
            "Title": SchemaProperty(type="title"),
            "Global ID": SchemaProperty(type="rich_text"),
            "Description": SchemaProperty(type="rich_text"),
            "Status": SchemaProperty(type="select", options=("Todo", "In Progress", "Done")),
            "Priority": SchemaProperty(type="select", options=("High", "Low")),
            "Type": SchemaProperty(type="select", options=("Epic", "Story", "Issue")),
            "Assignee": SchemaProperty(type="people"),
            "Project": SchemaProperty(type="relation"),
            "Sprint": SchemaProperty(type="relation"),
            "Story": SchemaProperty(type="relation"),
            "Parent Issue": SchemaProperty(type="relation"),
            "Due Date": SchemaProperty(type="date"),
        },
    )


def _mock_client(schema: DatabaseSchema) -> MagicMock:
    client = MagicMock(spec=NotionClient)
    client.retrieve_database = AsyncMock(return_value=schema)
    client.create_page = AsyncMock(
        return_value={"id": "page-1", "url": "https://www.notion.so/page-1"}
    )
    return client


def _mock_minter(global_id: str = "KM-12") -> MagicMock:
    minter = MagicMock()
    minter.next_global_id = AsyncMock(return_value=global_id)
    return minter


_DATABASES = TicketDatabases(issues_db_id="iss", stories_db_id="sto")


# ---------------------------------------------------------------------------
# Request validation
# ---------------------------------------------------------------------------


class TestCreateTicketRequest:
    def test_accepts_camel_case(self):
        request = CreateTicketRequest.parse(
            {
                "type": "Issue",
                "title": "  Fix  ",
                "assigneeIds": ["u1"],
                "dueDateStart": "2024-05-01",
            }
        )
        assert request.type is TicketType.issue
        assert request.title == "Fix"
        assert request.assignee_ids == ["u1"]
        assert request.due_date_start == "2024-05-01"

    def test_null_lists_become_empty(self):
        request = CreateTicketRequest.parse({"type": "Epic", "title": "E", "projectIds": None})
        assert request.project_ids == []

    @pytest.mark.parametrize(
        ("payload", "message"),
        [
            ({"type": "Task", "title": "x"}, "type must be one of: Epic, Story, Issue."),
            ({"title": "x"}, "type must be one of: Epic, Story, Issue."),
            ({"type": "Issue", "title": "   "}, "title is required."),
            ({"type": "Issue"}, "title is required."),
            ([1, 2], "Request body must be a JSON object."),
            (None, "Request body must be a JSON object."),
        ],
    )
    def test_rejects_invalid_input(self, payload, message):
        with pytest.raises(TicketValidationError) as exc_info:
            CreateTicketRequest.parse(payload)
        assert str(exc_info.value) == message


# ---------------------------------------------------------------------------
# build_ticket_properties
# ---------------------------------------------------------------------------


class TestBuildTicketProperties:
    def test_maps_every_supported_field(self):
        request = CreateTicketRequest.parse(
            {
                "type": "Issue",
                "title": "Fix login",
                "status": "Todo",
                "priority": "High",
                "description": "Steps to reproduce",
                "assigneeIds": ["u1"],
                "projectIds": ["proj1"],
                "sprintIds": ["spr1"],
                "parentIds": ["story1"],
                "dueDateStart": "2024-05-01",
                "dueDateEnd": "2024-05-03",
            }
        )

        properties = build_ticket_properties(_full_schema(), request, "KM-12")

        assert properties == {
            "Title": title_payload("[KM-12] Fix login"),
            "Global ID": rich_text_payload("KM-12"),
            "Description": rich_text_payload("Steps to reproduce"),
            "Status": select_payload("Todo"),
            "Priority": select_payload("High"),
            "Type": select_payload("Issue"),
            "Assignee": people_payload(["u1"]),
            "Project": relation_payload(["proj1"]),
            "Sprint": relation_payload(["spr1"]),
            "Story": relation_payload(["story1"]),
            "Due Date": date_payload("2024-05-01", "2024-05-03"),
        }

    def test_unknown_select_option_is_omitted(self):
        request = CreateTicketRequest.parse({"type": "Issue", "title": "X", "status": "Blocked"})
        properties = build_ticket_properties(_full_schema(), request, "KM-1")
        assert "Status" not in properties

    def test_epic_parent_uses_generic_relation(self):
        request = CreateTicketRequest.parse({"type": "Epic", "title": "E", "parentIds": ["p"]})
        properties = build_ticket_properties(_full_schema(), request, "KM-1")
        assert properties["Parent Issue"] == relation_payload(["p"])
        assert "Story" not in properties

    def test_mistyped_properties_are_skipped(self):
        schema = DatabaseSchema(
            id="db",
            properties={
                "Name": SchemaProperty(type="title"),
                "Global ID": SchemaProperty(type="number"),
                "Due Date": SchemaProperty(type="rich_text"),
                "Assignee": SchemaProperty(type="rich_text"),
            },
        )
        request = CreateTicketRequest.parse(
            {"type": "Story", "title": "S", "assigneeIds": ["u"], "dueDateStart": "2024-05-01"}
        )

        properties = build_ticket_properties(schema, request, "KM-3")

        assert properties == {"Name": title_payload("[KM-3] S")}


# ---------------------------------------------------------------------------
# create_ticket
# ---------------------------------------------------------------------------


class TestCreateTicket:
    async def test_creates_in_typed_database(self):
        client = _mock_client(_full_schema("sto"))
        minter = _mock_minter("KM-12")

        created = await create_ticket(
            client, minter, _DATABASES, {"type": "Story", "title": "Login flow"}
        )

        assert created == CreatedTicket(
            global_id="KM-12",
            record_id="page-1",
            record_url="https://www.notion.so/page-1",
            database_id="sto",
        )
        client.retrieve_database.assert_awaited_once_with("sto")
        database_id, properties = client.create_page.await_args.args
        assert database_id == "sto"
        assert properties["Title"] == title_payload("[KM-12] Login flow")
        assert created.to_response() == {
            "globalId": "KM-12",
            "pageId": "page-1",
            "pageUrl": "https://www.notion.so/page-1",
            "databaseId": "sto",
        }

    async def test_epic_falls_back_to_issues_database(self):
        client = _mock_client(_full_schema())
        created = await create_ticket(
            client, _mock_minter(), _DATABASES, {"type": "Epic", "title": "Big thing"}
        )
        assert created.database_id == "iss"

    async def test_validation_happens_before_side_effects(self):
        client = _mock_client(_full_schema())
        minter = _mock_minter()

        with pytest.raises(TicketValidationError):
            await create_ticket(client, minter, _DATABASES, {"type": "Issue", "title": ""})

        minter.next_global_id.assert_not_awaited()
        client.retrieve_database.assert_not_awaited()
        client.create_page.assert_not_awaited()

    async def test_missing_database_fails_before_minting(self):
        client = _mock_client(_full_schema())
        minter = _mock_minter()

        with pytest.raises(ConfigurationError):
            await create_ticket(client, minter, TicketDatabases(), {"type": "Issue", "title": "X"})

        minter.next_global_id.assert_not_awaited()

    async def test_write_failure_keeps_identifier_consumed(self):
        client = _mock_client(_full_schema())
        client.create_page.side_effect = UpstreamWriteError(status_code=400, message="bad")
        minter = _mock_minter()

        with pytest.raises(UpstreamWriteError):
            await create_ticket(client, minter, _DATABASES, {"type": "Issue", "title": "X"})

        minter.next_global_id.assert_awaited_once()

    async def test_missing_url_is_empty_string(self):
        client = _mock_client(_full_schema())
        client.create_page.return_value = {"id": "page-2"}

        created = await create_ticket(
            client, _mock_minter(), _DATABASES, {"type": "Issue", "title": "X"}
        )

        assert created.record_url == ""
