"""Shared fixtures for API tests.

The app is driven through ``httpx.ASGITransport``, which does not run the
lifespan, so every test wires its dependencies via ``dependency_overrides``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi import FastAPI

from notion_calendar.api.app import create_app
from notion_calendar.api.deps import get_minter, get_server_notion_client, get_ticket_databases
from notion_calendar.config import TicketDatabases
from notion_calendar.notion.client import NotionClient


@pytest.fixture
def app() -> FastAPI:
    return create_app()


@pytest.fixture
async def api(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client


@pytest.fixture
def mock_notion() -> MagicMock:
    client = MagicMock(spec=NotionClient)
    client.retrieve_database = AsyncMock()
    client.query_database = AsyncMock(return_value=[])
    client.update_page = AsyncMock(return_value={})
    client.create_page = AsyncMock()
    return client


@pytest.fixture
def mock_minter() -> MagicMock:
    minter = MagicMock()
    minter.next_global_id = AsyncMock(return_value="KM-1")
    return minter


@pytest.fixture
def wired_app(app: FastAPI, mock_notion: MagicMock, mock_minter: MagicMock) -> FastAPI:
    """App whose server-side Notion client, minter, and ticket DBs are mocked."""
    app.dependency_overrides[get_server_notion_client] = lambda: mock_notion
    app.dependency_overrides[get_minter] = lambda: mock_minter
    app.dependency_overrides[get_ticket_databases] = lambda: TicketDatabases(
        issues_db_id="iss", stories_db_id="sto", epics_db_id="epi"
    )
    return app
