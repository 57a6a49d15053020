"""
Pydantic schemas for catalog endpoints (games and books).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Link(BaseModel):
    key: str = Field(..., min_length=1, max_length=200)
    value: str = Field(..., min_length=1, max_length=2048)


class _EntryCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    genres: list[str]
    tags: list[str]
    rating: int = Field(..., ge=1, le=5)
    status: str = Field(..., min_length=1, max_length=50)
    description: str
    my_thoughts: str
    links: list[Link]
    # Exactly one cover source is used; see assets.service.resolve_cover.
    cover_image: str | None = Field(default=None, max_length=2048)
    cover_image_url: str | None = Field(default=None, max_length=2048)
    explicit: bool = False
    color: str = Field(..., min_length=1, max_length=32)


class GameCreate(_EntryCreate):
    developer: str = Field(..., min_length=1, max_length=300)
    percent: int = Field(..., ge=0, le=100)
    bad: bool = False


class BookCreate(_EntryCreate):
    author: str = Field(..., min_length=1, max_length=300)


class _EntryUpdate(BaseModel):
    """
    Partial update: only fields present in the request are written.
    """

    title: str | None = Field(default=None, min_length=1, max_length=300)
    genres: list[str] | None = None
    tags: list[str] | None = None
    rating: int | None = Field(default=None, ge=1, le=5)
    status: str | None = Field(default=None, min_length=1, max_length=50)
    description: str | None = None
    my_thoughts: str | None = None
    links: list[Link] | None = None
    cover_image: str | None = Field(default=None, max_length=2048)
    explicit: bool | None = None
    color: str | None = Field(default=None, min_length=1, max_length=32)


class GameUpdate(_EntryUpdate):
    developer: str | None = Field(default=None, min_length=1, max_length=300)
    percent: int | None = Field(default=None, ge=0, le=100)
    bad: bool | None = None


class BookUpdate(_EntryUpdate):
    author: str | None = Field(default=None, min_length=1, max_length=300)


class _SearchParams(BaseModel):
    # Unknown query parameters (including any owner/user field) are rejected.
    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    description: str | None = None
    my_thoughts: str | None = None
    color: str | None = None
    status: str | None = None
    rating: int | None = None
    min_rating: int | None = None
    max_rating: int | None = None
    genres: list[str] = []
    tags: list[str] = []
    explicit: bool | None = None
    created_after: str | None = None
    created_before: str | None = None

    sort_by: str | None = None
    sort_order: str | None = None
    limit: int | None = None
    offset: int | None = None


class GameSearchParams(_SearchParams):
    developer: str | None = None
    bad: bool | None = None
    min_percent: int | None = None
    max_percent: int | None = None


class BookSearchParams(_SearchParams):
    author: str | None = None


PAGING_AND_SORT_FIELDS = frozenset({"sort_by", "sort_order", "limit", "offset"})
