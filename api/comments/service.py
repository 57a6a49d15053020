"""
Comment business logic.

Anyone signed in may comment on an existing game or book. Owners edit and
delete their own comments; admins may edit or delete any.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, status

from auth.dependencies import is_admin
from catalog import repository as catalog_repository
from catalog.entities import BOOKS, GAMES

from . import repository, schemas

logger = logging.getLogger(__name__)


def _to_response(row: dict[str, Any]) -> schemas.CommentResponse:
    return schemas.CommentResponse(**row)


async def create_comment(payload: schemas.CommentCreate, *, user: dict) -> schemas.CommentResponse:
    config, target_id = (GAMES, payload.game_id) if payload.game_id is not None else (BOOKS, payload.book_id)
    if not await catalog_repository.entry_exists(config, int(target_id)):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{config.singular.capitalize()} not found",
        )

    row = await repository.create_comment(
        user_id=int(user["id"]),
        content=payload.content,
        game_id=payload.game_id,
        book_id=payload.book_id,
    )
    logger.info("comment_created id=%s user_id=%s %s_id=%s", row["id"], user["id"], config.singular, target_id)
    return _to_response(row)


async def list_comments(*, game_id: int | None, book_id: int | None) -> list[schemas.CommentResponse]:
    if (game_id is None) == (book_id is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="exactly one of game_id or book_id is required",
        )
    rows = await repository.list_comments(game_id=game_id, book_id=book_id)
    return [_to_response(row) for row in rows]


async def _owned_or_admin(comment_id: int, user: dict) -> dict[str, Any]:
    row = await repository.get_comment(comment_id)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    if int(row["user_id"]) != int(user["id"]) and not is_admin(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only modify your own comments",
        )
    return row


async def update_comment(
    comment_id: int,
    payload: schemas.CommentUpdate,
    *,
    user: dict,
) -> schemas.CommentResponse:
    await _owned_or_admin(comment_id, user)
    if not await repository.update_comment(comment_id, content=payload.content):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")

    row = await repository.get_comment(comment_id)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    return _to_response(row)


async def delete_comment(comment_id: int, *, user: dict) -> dict[str, str]:
    await _owned_or_admin(comment_id, user)
    if not await repository.delete_comment(comment_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    logger.info("comment_deleted id=%s by_user_id=%s", comment_id, user["id"])
    return {"message": "Comment deleted successfully"}
