"""
Catalog persistence (raw SQL), shared by games and books.

Table and column names come only from `EntityConfig`; values are always
bound through `Params`.
"""

from __future__ import annotations

import json
from typing import Any

from core import db

from .entities import JSON_ARRAY_COLUMNS, EntityConfig
from .query import BuiltQuery, Params


def _json_arg(value: list[str] | None) -> str | None:
    """
    asyncpg does not encode Python lists for jsonb parameters by default.
    We pass JSON as a string and cast to jsonb in SQL.
    """
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=True)


def _json_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = json.loads(value)
    return [str(v) for v in value]


def _decode_row(row: dict[str, Any]) -> dict[str, Any]:
    for column in JSON_ARRAY_COLUMNS:
        if column in row:
            row[column] = _json_list(row[column])
    return row


def _slot(params: Params, column: str, value: Any) -> str:
    if column in JSON_ARRAY_COLUMNS:
        return f"{params.bind(_json_arg(value))}::jsonb"
    return params.bind(value)


async def fetch_links(config: EntityConfig, entry_ids: list[int]) -> dict[int, list[dict[str, Any]]]:
    """
    Links for many entries in one round trip, keyed by entry id.
    """
    if not entry_ids:
        return {}
    rows = await db.fetch_all(
        f"""
        SELECT id, key, value, {config.link_fk} AS entry_id
        FROM {config.link_table}
        WHERE {config.link_fk} = ANY($1::bigint[])
        ORDER BY id
        """,
        entry_ids,
    )
    by_entry: dict[int, list[dict[str, Any]]] = {entry_id: [] for entry_id in entry_ids}
    for row in rows:
        by_entry[int(row["entry_id"])].append(
            {"id": int(row["id"]), "key": row["key"], "value": row["value"]}
        )
    return by_entry


async def _with_links(config: EntityConfig, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    entries = [_decode_row(row) for row in rows]
    links = await fetch_links(config, [int(e["id"]) for e in entries])
    for entry in entries:
        entry["links"] = links.get(int(entry["id"]), [])
    return entries


async def run_search(config: EntityConfig, query: BuiltQuery) -> list[dict[str, Any]]:
    rows = await db.fetch_all(query.sql, *query.params)
    return await _with_links(config, rows)


async def get_entry(config: EntityConfig, entry_id: int, *, user_id: int) -> dict[str, Any] | None:
    row = await db.fetch_one(
        f"""
        SELECT {", ".join(config.columns)}
        FROM {config.table}
        WHERE id = $1
          AND user_id = $2
        """,
        entry_id,
        user_id,
    )
    if row is None:
        return None
    entries = await _with_links(config, [row])
    return entries[0]


async def _insert_links(conn, config: EntityConfig, entry_id: int, links: list[dict[str, str]]) -> None:
    if not links:
        return
    records = [(link["key"], link["value"], entry_id) for link in links]
    await conn.executemany(
        f"INSERT INTO {config.link_table} (key, value, {config.link_fk}) VALUES ($1, $2, $3)",
        records,
    )


async def create_entry(
    config: EntityConfig,
    *,
    user_id: int,
    values: dict[str, Any],
    links: list[dict[str, str]],
) -> dict[str, Any]:
    """
    Insert an entry + its links in a single transaction.

    Returns {id, created_at, updated_at}.
    """
    params = Params()
    columns = [c for c in config.writable if c in values]
    slots = [_slot(params, c, values[c]) for c in columns]
    columns.append("user_id")
    slots.append(params.bind(user_id))

    async with db.transaction() as conn:
        row = await conn.fetchrow(
            f"""
            INSERT INTO {config.table} ({", ".join(columns)})
            VALUES ({", ".join(slots)})
            RETURNING id, created_at, updated_at
            """,
            *params.values,
        )
        if row is None:
            raise RuntimeError(f"Failed to insert {config.singular}.")

        entry_id = int(row["id"])
        await _insert_links(conn, config, entry_id, links)
        return dict(row)


async def update_entry(
    config: EntityConfig,
    entry_id: int,
    *,
    user_id: int,
    values: dict[str, Any],
    links: list[dict[str, str]] | None,
) -> bool:
    """
    Apply a partial update; `links=None` leaves links untouched.

    Returns False when no row owned by `user_id` has that id.
    """
    params = Params()
    assignments = [f"{c} = {_slot(params, c, values[c])}" for c in config.writable if c in values]
    assignments.append("updated_at = now()")
    id_slot = params.bind(entry_id)
    owner_slot = params.bind(user_id)

    async with db.transaction() as conn:
        status = await conn.execute(
            f"""
            UPDATE {config.table}
            SET {", ".join(assignments)}
            WHERE id = {id_slot}
              AND user_id = {owner_slot}
            """,
            *params.values,
        )
        if db.affected_rows(status) == 0:
            return False

        if links is not None:
            await conn.execute(
                f"DELETE FROM {config.link_table} WHERE {config.link_fk} = $1",
                entry_id,
            )
            await _insert_links(conn, config, entry_id, links)
    return True


async def delete_entry(config: EntityConfig, entry_id: int, *, user_id: int) -> bool:
    status = await db.execute(
        f"""
        DELETE FROM {config.table}
        WHERE id = $1
          AND user_id = $2
        """,
        entry_id,
        user_id,
    )
    return db.affected_rows(status) > 0


async def entry_exists(config: EntityConfig, entry_id: int) -> bool:
    row = await db.fetch_one(
        f"SELECT 1 AS ok FROM {config.table} WHERE id = $1 LIMIT 1",
        entry_id,
    )
    return row is not None
