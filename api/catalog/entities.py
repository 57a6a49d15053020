"""
Games and books: one table shape each, described as data.

Both entity types share every algorithm (search, create, update, links);
only the column sets below differ.
"""

from __future__ import annotations

from dataclasses import dataclass

from .query import QueryBuilder, SearchFields

JSON_ARRAY_COLUMNS = frozenset({"genres", "tags"})


@dataclass(frozen=True)
class EntityConfig:
    name: str
    singular: str
    table: str
    link_table: str
    link_fk: str
    # Columns a client may write (create and update), in insert order.
    writable: tuple[str, ...]
    search: SearchFields

    @property
    def columns(self) -> tuple[str, ...]:
        return self.search.columns

    def query_builder(self) -> QueryBuilder:
        return QueryBuilder(self.search)


GAME_WRITABLE = (
    "title",
    "developer",
    "genres",
    "tags",
    "rating",
    "status",
    "description",
    "my_thoughts",
    "cover_image",
    "explicit",
    "color",
    "percent",
    "bad",
)

BOOK_WRITABLE = (
    "title",
    "author",
    "genres",
    "tags",
    "rating",
    "status",
    "description",
    "my_thoughts",
    "cover_image",
    "explicit",
    "color",
)

_ROW_META = ("user_id", "created_at", "updated_at")
_CREATED_RANGE = {"created_at": ("created_after", "created_before")}

GAMES = EntityConfig(
    name="games",
    singular="game",
    table="games",
    link_table="game_links",
    link_fk="game_id",
    writable=GAME_WRITABLE,
    search=SearchFields(
        table="games",
        columns=("id",) + GAME_WRITABLE + _ROW_META,
        sortable=frozenset(
            {"title", "developer", "rating", "status", "percent", "created_at", "updated_at"}
        ),
        text=("title", "developer", "description", "my_thoughts"),
        exact=("color", "rating", "status"),
        flags=("explicit", "bad"),
        sets=("genres", "tags"),
        ranges=("rating", "percent"),
        dates=_CREATED_RANGE,
    ),
)

BOOKS = EntityConfig(
    name="books",
    singular="book",
    table="books",
    link_table="book_links",
    link_fk="book_id",
    writable=BOOK_WRITABLE,
    search=SearchFields(
        table="books",
        columns=("id",) + BOOK_WRITABLE + _ROW_META,
        sortable=frozenset({"title", "author", "rating", "status", "created_at", "updated_at"}),
        text=("title", "author", "description", "my_thoughts"),
        exact=("color", "rating", "status"),
        flags=("explicit",),
        sets=("genres", "tags"),
        ranges=("rating",),
        dates=_CREATED_RANGE,
    ),
)

ENTITIES = {GAMES.name: GAMES, BOOKS.name: BOOKS}
