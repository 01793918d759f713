"""Shared resources and FastAPI dependencies.

The app lifespan opens one :class:`Database` pool and one ``httpx.AsyncClient``
and wires them in through ``app.dependency_overrides``. The stubs below raise
until that happens, and tests override them directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx
from fastapi import Depends, FastAPI

from notion_calendar.config import CalendarDatabases, TicketDatabases, counter_name, notion_token
from notion_calendar.core.counter import SequenceAllocator, ensure_counter_table
from notion_calendar.db import Database
from notion_calendar.notion.client import NotionClient

logger = logging.getLogger(__name__)


@dataclass
class AppResources:
    """Process-wide handles owned by the app lifespan."""

    database: Database
    http_client: httpx.AsyncClient

    @classmethod
    def from_env(cls) -> AppResources:
        return cls(
            database=Database.from_env(),
            http_client=httpx.AsyncClient(timeout=httpx.Timeout(30.0, connect=10.0)),
        )

    async def open(self) -> None:
        try:
            pool = await self.database.connect()
            # Table must exist before concurrent mints start.
            await ensure_counter_table(pool)
        except Exception:
            logger.warning(
                "Failed to open counter database pool; ID-minting endpoints will fail",
                exc_info=True,
            )

    async def close(self) -> None:
        await self.http_client.aclose()
        await self.database.close()


def get_database() -> Database:
    """Dependency stub -- overridden at app startup or in tests."""
    raise RuntimeError("Database not initialized")


def get_http_client() -> httpx.AsyncClient:
    """Dependency stub -- overridden at app startup or in tests."""
    raise RuntimeError("HTTP client not initialized")


def get_calendar_databases() -> CalendarDatabases:
    return CalendarDatabases.from_env()


def get_ticket_databases() -> TicketDatabases:
    return TicketDatabases.from_env()


def get_minter(database: Database = Depends(get_database)) -> SequenceAllocator:
    return SequenceAllocator(database.require_pool(), counter_name())


def get_server_notion_client(
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> NotionClient:
    """Notion client authenticated with the integration token."""
    return NotionClient(notion_token(), http_client=http_client)


def wire_resources(app: FastAPI, resources: AppResources) -> None:
    """Point the dependency stubs at *resources*, keeping overrides already set."""
    app.dependency_overrides.setdefault(get_database, lambda: resources.database)
    app.dependency_overrides.setdefault(get_http_client, lambda: resources.http_client)
