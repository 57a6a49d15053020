"""
Comment API schemas.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, model_validator


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)
    game_id: int | None = Field(default=None, ge=1)
    book_id: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _exactly_one_target(self) -> "CommentCreate":
        if (self.game_id is None) == (self.book_id is None):
            raise ValueError("exactly one of game_id or book_id is required")
        return self


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)


class CommentResponse(BaseModel):
    id: int
    content: str
    user_id: int
    username: str
    game_id: int | None = None
    book_id: int | None = None
    created_at: datetime
    updated_at: datetime
