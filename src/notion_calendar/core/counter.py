"""Durable monotonic counters backed by PostgreSQL.

Each counter is a single row in ``global_counters``. :func:`next_value`
increments it inside one transaction, so concurrent callers are serialized
by the row lock taken by ``UPDATE`` and never observe the same value.
Nothing is cached in-process between calls.
"""

from __future__ import annotations

import logging
import re

import asyncpg

from notion_calendar.errors import NotionCalendarError

logger = logging.getLogger(__name__)

GLOBAL_ID_PREFIX = "KM"

_CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS global_counters (
        name TEXT PRIMARY KEY,
        value BIGINT NOT NULL
    )
"""


class CounterError(NotionCalendarError):
    """Raised when the counter row could not be incremented."""


async def ensure_counter_table(pool: asyncpg.Pool) -> None:
    """Create the ``global_counters`` table if it does not exist yet."""
    await pool.execute(_CREATE_TABLE_SQL)


async def next_value(pool: asyncpg.Pool, counter_name: str) -> int:
    """Increment *counter_name* and return its new value.

    The row is created with value 0 on first use, so a fresh counter yields 1.
    Any failure rolls the transaction back and propagates; callers must not
    assume a value was consumed in that case.
    """
    if not counter_name or not counter_name.strip():
        raise ValueError("counter_name must be a non-empty string")

    async with pool.acquire() as conn:
        async with conn.transaction():
            await conn.execute(_CREATE_TABLE_SQL)
            await conn.execute(
                """
                INSERT INTO global_counters (name, value)
                VALUES ($1, 0)
                ON CONFLICT (name) DO NOTHING
                """,
                counter_name,
            )
            value = await conn.fetchval(
                """
                UPDATE global_counters
                SET value = value + 1
                WHERE name = $1
                RETURNING value
                """,
                counter_name,
            )
            if value is None:
                raise CounterError(f"Failed to get next value for counter {counter_name!r}")

    logger.debug("Counter %s advanced to %d", counter_name, value)
    return int(value)


async def current_value(pool: asyncpg.Pool, counter_name: str) -> int | None:
    """Return the last issued value of *counter_name*, or None if never used."""
    try:
        value = await pool.fetchval(
            "SELECT value FROM global_counters WHERE name = $1",
            counter_name,
        )
    except asyncpg.UndefinedTableError:
        return None
    return int(value) if value is not None else None


def format_global_id(value: int) -> str:
    """Render a counter value as a display identifier (``KM-<n>``)."""
    return f"{GLOBAL_ID_PREFIX}-{value}"


_GLOBAL_ID_PATTERN = re.compile(rf"^{GLOBAL_ID_PREFIX}-(\d+)$")


def parse_global_id(value: str) -> int | None:
    """Return the numeric part of a ``KM-<n>`` identifier, or None."""
    match = _GLOBAL_ID_PATTERN.match(value.strip())
    return int(match.group(1)) if match else None


class SequenceAllocator:
    """Binds a pool to one counter name for identifier-minting call sites."""

    def __init__(self, pool: asyncpg.Pool, counter_name: str) -> None:
        if not counter_name or not counter_name.strip():
            raise ValueError("counter_name must be a non-empty string")
        self._pool = pool
        self.counter_name = counter_name

    async def next_value(self) -> int:
        return await next_value(self._pool, self.counter_name)

    async def next_global_id(self) -> str:
        """Mint a fresh ``KM-<n>`` identifier."""
        return format_global_id(await self.next_value())
