"""
Filtered search SQL builder.

Builds one parameterized SELECT from a bag of optional criteria. The
statement text is assembled only from identifiers declared in an entity's
`SearchFields`; every caller-supplied value goes through a `$n` slot.

Rules:
- the owner predicate is always first and always bound
- an absent or empty criterion adds nothing
- values for one set field are ORed ("any of"), groups are ANDed
- range bounds only apply when set and nonzero
- unknown sort fields fall back to the default sort
- limit/offset are the last two parameters
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any

DEFAULT_LIMIT = 50
MAX_LIMIT = 100

ASCENDING = "ASC"
DESCENDING = "DESC"

_DIRECTIONS = {
    "asc": ASCENDING,
    "ascending": ASCENDING,
    "desc": DESCENDING,
    "descending": DESCENDING,
}

logger = logging.getLogger(__name__)


class InvalidCriteria(ValueError):
    pass


@dataclass(frozen=True)
class SearchFields:
    """
    Which columns of one table may be filtered and sorted, and how.

    Criterion names:
    - text/exact/flags/sets: the column name itself
    - ranges: `min_<column>` and `max_<column>`
    - dates: the (after, before) pair given in the mapping
    """

    table: str
    columns: tuple[str, ...]
    sortable: frozenset[str]
    text: tuple[str, ...] = ()
    exact: tuple[str, ...] = ()
    flags: tuple[str, ...] = ()
    sets: tuple[str, ...] = ()
    ranges: tuple[str, ...] = ()
    dates: Mapping[str, tuple[str, str]] = field(default_factory=dict)
    owner_column: str = "user_id"
    default_sort: tuple[str, str] = ("created_at", DESCENDING)
    tiebreak_column: str = "id"

    def criteria_names(self) -> frozenset[str]:
        names: set[str] = set(self.text) | set(self.exact) | set(self.flags) | set(self.sets)
        for column in self.ranges:
            names.update((f"min_{column}", f"max_{column}"))
        for after, before in self.dates.values():
            names.update((after, before))
        return frozenset(names)


@dataclass(frozen=True)
class SortSpec:
    field: str | None = None
    direction: str | None = None

    def resolve(self, fields: SearchFields) -> tuple[str, str]:
        if not self.field or self.field not in fields.sortable:
            if self.field:
                logger.info(
                    "search_sort_fallback table=%s requested=%r default=%s",
                    fields.table,
                    self.field,
                    " ".join(fields.default_sort),
                )
            return fields.default_sort
        direction = _DIRECTIONS.get((self.direction or "").strip().lower(), ASCENDING)
        return self.field, direction


@dataclass(frozen=True)
class PageSpec:
    limit: int | None = None
    offset: int | None = None

    def clamped(self) -> tuple[int, int]:
        limit = self.limit
        if limit is None or limit <= 0:
            limit = DEFAULT_LIMIT
        elif limit > MAX_LIMIT:
            limit = MAX_LIMIT
        offset = max(self.offset or 0, 0)
        return limit, offset


@dataclass(frozen=True)
class BuiltQuery:
    sql: str
    params: list[Any]
    limit: int
    offset: int


class Params:
    """
    Ordered bind values; `bind` returns the placeholder for the new value.
    """

    def __init__(self) -> None:
        self.values: list[Any] = []

    def bind(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"

    def __len__(self) -> int:
        return len(self.values)


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def parse_day(value: Any, *, name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError as exc:
            raise InvalidCriteria(f"{name} must be a date in YYYY-MM-DD format.") from exc
    raise InvalidCriteria(f"{name} must be a date in YYYY-MM-DD format.")


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max, tzinfo=timezone.utc)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple, set, frozenset)):
        return len(value) == 0
    return False


def _as_text(value: Any, *, name: str) -> str:
    if not isinstance(value, str):
        raise InvalidCriteria(f"{name} must be a string.")
    return value


def _as_int(value: Any, *, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidCriteria(f"{name} must be an integer.")
    return value


def _as_text_list(value: Any, *, name: str) -> list[str]:
    items = [value] if isinstance(value, str) else value
    if not isinstance(items, (list, tuple)) or not all(isinstance(v, str) for v in items):
        raise InvalidCriteria(f"{name} must be a list of strings.")
    return [v for v in items if v != ""]


class QueryBuilder:
    def __init__(self, fields: SearchFields) -> None:
        self.fields = fields

    def build(
        self,
        criteria: Mapping[str, Any],
        sort: SortSpec,
        page: PageSpec,
        owner_id: int,
    ) -> BuiltQuery:
        """
        Return the SELECT text and its bind values in placeholder order.
        """
        fields = self.fields
        unknown = sorted(set(criteria) - fields.criteria_names())
        if unknown:
            raise InvalidCriteria(f"Unknown search field(s): {', '.join(unknown)}")

        params = Params()
        where = [f"{fields.owner_column} = {params.bind(owner_id)}"]

        def present(name: str) -> bool:
            return not _is_blank(criteria.get(name))

        for column in fields.text:
            if present(column):
                pattern = "%" + escape_like(_as_text(criteria[column], name=column)) + "%"
                where.append(f"{column} ILIKE {params.bind(pattern)}")

        for column in fields.exact:
            if not present(column):
                continue
            value = criteria[column]
            if isinstance(value, bool) or not isinstance(value, (str, int)):
                raise InvalidCriteria(f"{column} must be a string or integer.")
            if value == 0:
                continue
            where.append(f"{column} = {params.bind(value)}")

        for column in fields.flags:
            if not present(column):
                continue
            value = criteria[column]
            if not isinstance(value, bool):
                raise InvalidCriteria(f"{column} must be a boolean.")
            where.append(f"{column} = {params.bind(value)}")

        for column in fields.sets:
            if not present(column):
                continue
            wanted = _as_text_list(criteria[column], name=column)
            if not wanted:
                continue
            group = " OR ".join(f"{column} ? {params.bind(v)}" for v in wanted)
            where.append(f"({group})")

        for column in fields.ranges:
            low_name, high_name = f"min_{column}", f"max_{column}"
            if present(low_name):
                low = _as_int(criteria[low_name], name=low_name)
                if low != 0:
                    where.append(f"{column} >= {params.bind(low)}")
            if present(high_name):
                high = _as_int(criteria[high_name], name=high_name)
                if high != 0:
                    where.append(f"{column} <= {params.bind(high)}")

        for column, (after_name, before_name) in fields.dates.items():
            if present(after_name):
                day = parse_day(criteria[after_name], name=after_name)
                where.append(f"{column} >= {params.bind(start_of_day(day))}")
            if present(before_name):
                day = parse_day(criteria[before_name], name=before_name)
                where.append(f"{column} <= {params.bind(end_of_day(day))}")

        sort_column, direction = sort.resolve(fields)
        limit, offset = page.clamped()
        limit_slot = params.bind(limit)
        offset_slot = params.bind(offset)

        sql = (
            f"SELECT {', '.join(fields.columns)}\n"
            f"FROM {fields.table}\n"
            f"WHERE {' AND '.join(where)}\n"
            f"ORDER BY {sort_column} {direction}, {fields.tiebreak_column} {direction}\n"
            f"LIMIT {limit_slot} OFFSET {offset_slot}"
        )
        return BuiltQuery(sql=sql, params=list(params.values), limit=limit, offset=offset)
