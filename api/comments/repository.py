"""
Comment persistence helpers.
"""

from __future__ import annotations

from typing import Any

from core import db

_SELECT = """
    SELECT c.id, c.content, c.user_id, u.username, c.game_id, c.book_id,
           c.created_at, c.updated_at
    FROM comments c
    JOIN users u ON u.id = c.user_id
"""


async def create_comment(
    *,
    user_id: int,
    content: str,
    game_id: int | None,
    book_id: int | None,
) -> dict[str, Any]:
    row = await db.fetch_one(
        """
        INSERT INTO comments (content, user_id, game_id, book_id)
        VALUES ($1, $2, $3, $4)
        RETURNING id
        """,
        content,
        user_id,
        game_id,
        book_id,
    )
    if row is None:
        raise RuntimeError("Failed to insert comment.")
    created = await get_comment(int(row["id"]))
    if created is None:
        raise RuntimeError("Inserted comment disappeared.")
    return created


async def get_comment(comment_id: int) -> dict[str, Any] | None:
    return await db.fetch_one(f"{_SELECT} WHERE c.id = $1", comment_id)


async def list_comments(*, game_id: int | None = None, book_id: int | None = None) -> list[dict[str, Any]]:
    if game_id is not None:
        column, target = "game_id", game_id
    else:
        column, target = "book_id", book_id
    return await db.fetch_all(
        f"{_SELECT} WHERE c.{column} = $1 ORDER BY c.created_at DESC, c.id DESC",
        target,
    )


async def update_comment(comment_id: int, *, content: str) -> bool:
    status = await db.execute(
        """
        UPDATE comments
        SET content = $2,
            updated_at = now()
        WHERE id = $1
        """,
        comment_id,
        content,
    )
    return db.affected_rows(status) > 0


async def delete_comment(comment_id: int) -> bool:
    status = await db.execute("DELETE FROM comments WHERE id = $1", comment_id)
    return db.affected_rows(status) > 0
