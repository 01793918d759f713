"""The counter database: where it lives and the asyncpg pool that reaches it.

Only the ``KM-<n>`` allocator touches PostgreSQL, so the process needs one
small pool and a connection URL. ``SUPABASE_DB_URL`` wins over
``DATABASE_URL``; any ``sslmode`` in the URL is honoured by asyncpg itself.
"""

from __future__ import annotations

import logging
import os
from urllib.parse import urlsplit

import asyncpg

from notion_calendar.errors import ConfigurationError

logger = logging.getLogger(__name__)

DATABASE_URL_ENV_VARS = ("SUPABASE_DB_URL", "DATABASE_URL")


def database_url_from_env() -> str | None:
    """First non-blank URL among :data:`DATABASE_URL_ENV_VARS`, or None."""
    for name in DATABASE_URL_ENV_VARS:
        value = (os.environ.get(name) or "").strip()
        if value:
            return value
    return None


def describe_url(url: str) -> str:
    """``host:port/dbname`` for logs, without credentials."""
    parts = urlsplit(url)
    return f"{parts.hostname or 'localhost'}:{parts.port or 5432}{parts.path or '/'}"


class Database:
    """Owns the asyncpg pool used by the sequence allocator.

    Opened explicitly with :meth:`connect` and released with :meth:`close`.
    A handle built without a URL can still be passed around; it fails with
    :class:`ConfigurationError` only when something tries to connect.
    """

    def __init__(self, url: str | None, *, min_size: int = 1, max_size: int = 5) -> None:
        self.url = url
        self.min_size = min_size
        self.max_size = max_size
        self.pool: asyncpg.Pool | None = None

    @classmethod
    def from_env(cls) -> Database:
        return cls(database_url_from_env())

    async def connect(self) -> asyncpg.Pool:
        if self.pool is not None:
            return self.pool
        if not self.url:
            raise ConfigurationError("Missing required env: DATABASE_URL")
        # Supabase's transaction pooler cannot reuse prepared statements.
        self.pool = await asyncpg.create_pool(
            dsn=self.url,
            min_size=self.min_size,
            max_size=self.max_size,
            statement_cache_size=0,
        )
        logger.info("Counter database pool opened: %s", describe_url(self.url))
        return self.pool

    async def close(self) -> None:
        if self.pool is None:
            return
        await self.pool.close()
        self.pool = None
        logger.info("Counter database pool closed")

    def require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise RuntimeError("Counter database pool is not open")
        return self.pool
