"""
asyncpg pool plus the few query helpers every repository uses.

The pool is process-wide: `main.lifespan` opens it and closes it. Queries
use asyncpg's positional placeholders ($1, $2, ...); jsonb values travel
as JSON text and are cast in SQL ($n::jsonb).
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import asyncpg

from . import settings

_pool: asyncpg.Pool | None = None

# libpq-only query options asyncpg would reject.
_UNSUPPORTED_DSN_OPTIONS = frozenset({"sslmode"})


def asyncpg_dsn(url: str) -> str:
    parts = urlsplit(url)
    kept = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key not in _UNSUPPORTED_DSN_OPTIONS
    ]
    return urlunsplit(parts._replace(query=urlencode(kept)))


async def init_pool() -> None:
    global _pool
    if _pool is None:
        _pool = await asyncpg.create_pool(
            dsn=asyncpg_dsn(settings.database_url()),
            min_size=1,
            max_size=settings.db_pool_max_size(),
            command_timeout=30,
        )


async def close_pool() -> None:
    global _pool
    pool_, _pool = _pool, None
    if pool_ is not None:
        await pool_.close()


def pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("DB pool is not initialized. Call init_pool() on startup.")
    return _pool


@asynccontextmanager
async def transaction() -> AsyncIterator[asyncpg.Connection]:
    async with pool().acquire() as conn:
        async with conn.transaction():
            yield conn


def affected_rows(status: str) -> int:
    """
    Row count from a command status tag ("UPDATE 3" -> 3).
    """
    tail = (status or "").rsplit(" ", 1)[-1]
    return int(tail) if tail.isdigit() else 0


async def fetch_one(sql: str, *args: Any) -> dict[str, Any] | None:
    record = await pool().fetchrow(sql, *args)
    return None if record is None else dict(record)


async def fetch_all(sql: str, *args: Any) -> list[dict[str, Any]]:
    return [dict(record) for record in await pool().fetch(sql, *args)]


async def execute(sql: str, *args: Any) -> str:
    """
    Run a statement and return its status tag, e.g. "DELETE 1".
    """
    return await pool().execute(sql, *args)
