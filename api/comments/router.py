"""
Comment API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from auth import dependencies as auth_dependencies

from . import schemas, service

router = APIRouter(prefix="/api/v1/comments")


@router.get("")
async def list_comments(
    game_id: int | None = Query(default=None, ge=1),
    book_id: int | None = Query(default=None, ge=1),
    current_user: dict = Depends(auth_dependencies.get_current_user),
) -> list[schemas.CommentResponse]:
    return await service.list_comments(game_id=game_id, book_id=book_id)


@router.post("", status_code=201)
async def create_comment(
    payload: schemas.CommentCreate,
    current_user: dict = Depends(auth_dependencies.get_current_user),
) -> schemas.CommentResponse:
    return await service.create_comment(payload, user=current_user)


@router.put("/{comment_id}")
async def update_comment(
    comment_id: int,
    payload: schemas.CommentUpdate,
    current_user: dict = Depends(auth_dependencies.get_current_user),
) -> schemas.CommentResponse:
    return await service.update_comment(comment_id, payload, user=current_user)


@router.delete("/{comment_id}")
async def delete_comment(
    comment_id: int,
    current_user: dict = Depends(auth_dependencies.get_current_user),
) -> dict:
    return await service.delete_comment(comment_id, user=current_user)
