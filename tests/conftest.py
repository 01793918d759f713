"""Shared fixtures: a PostgreSQL testcontainer and a connected counter database."""

from __future__ import annotations

import shutil
import uuid
from collections.abc import AsyncIterator, Iterator
from typing import TYPE_CHECKING

import pytest

from notion_calendar.db import Database

if TYPE_CHECKING:
    from testcontainers.postgres import PostgresContainer

docker_available = shutil.which("docker") is not None


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer environment variables out of tests."""
    for name in (
        "NOTION_TOKEN",
        "NOTION_PROJECTS_DB_ID",
        "NOTION_ISSUES_DB_ID",
        "NOTION_SPRINTS_DB_ID",
        "NOTION_RELEASES_DB_ID",
        "NOTION_STORIES_DB_ID",
        "NOTION_EPICS_DB_ID",
        "GLOBAL_COUNTER_NAME",
        "CRON_SECRET",
        "SUPABASE_DB_URL",
        "DATABASE_URL",
        "NOTION_CALENDAR_LOG_LEVEL",
        "NOTION_CALENDAR_LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(scope="session")
def postgres_container() -> Iterator[PostgresContainer]:
    """Start one PostgreSQL container for the whole test session."""
    if not docker_available:
        pytest.skip("Docker not available")
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer("postgres:16") as pg:
        yield pg


@pytest.fixture
async def counter_database(postgres_container: PostgresContainer) -> AsyncIterator[Database]:
    """A connected :class:`Database` pointed at the test container."""
    url = (
        f"postgresql://{postgres_container.username}:{postgres_container.password}"
        f"@{postgres_container.get_container_host_ip()}"
        f":{postgres_container.get_exposed_port(5432)}/{postgres_container.dbname}"
    )
    database = Database(url, max_size=5)
    await database.connect()
    try:
        yield database
    finally:
        await database.close()


@pytest.fixture
def unique_counter_name() -> str:
    """Counter names are global in the container; keep tests isolated."""
    return f"test_counter_{uuid.uuid4().hex[:12]}"
