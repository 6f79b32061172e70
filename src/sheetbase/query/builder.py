"""Fluent query builder over a repository.

Predicates added with ``where_*`` are ANDed. A single sort key is kept
(calling ``order_by`` again replaces it). Filtering and sorting are
delegated to one ``Repository.find_all`` call; offset, limit and the
``select`` projection are applied afterwards, in that order.

Example:
    page = (
        db.query("Orders")
        .where_equals("status", "pending")
        .where_greater_than("total_amount", 100)
        .order_by("total_amount", "desc")
        .paginate(page=1, page_size=20)
    )
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterable
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from sheetbase.core.types import Page, Pagination
from sheetbase.data.index_cache import index_key
from sheetbase.data.repository import normalize_order
from sheetbase.exceptions import QueryError

if TYPE_CHECKING:
    from sheetbase.data.repository import Record, Repository

Predicate = Callable[["Record"], bool]


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def compare(left: Any, right: Any) -> int | None:
    """Three-way compare; numeric when both sides are numeric, else as strings.

    Returns None when either side is empty (empty never satisfies a comparison).
    """
    if left is None or right is None or left == "" or right == "":
        return None
    a, b = _as_number(left), _as_number(right)
    if a is None or b is None:
        a, b = str(left), str(right)  # type: ignore[assignment]
    return (a > b) - (a < b)  # type: ignore[operator]


def _flags(case_sensitive: bool) -> int:
    return re.DOTALL if case_sensitive else re.DOTALL | re.IGNORECASE


def _like_regex(pattern: str, case_sensitive: bool) -> re.Pattern[str]:
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), _flags(case_sensitive))


def _as_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(raw).date()
        except ValueError:
            return None
    return None


class QueryBuilder:
    """Chainable filter/sort/paginate pipeline for one repository.

    The builder is mutable: every method returns ``self``.
    """

    def __init__(self, repository: Repository) -> None:
        self._repository = repository
        self._predicates: list[Predicate] = []
        self._order_field: str | None = None
        self._order = "asc"
        self._limit: int | None = None
        self._offset = 0
        self._fields: list[str] | None = None

    @property
    def table(self) -> str:
        return self._repository.name

    def _field(self, name: str) -> str:
        self._repository.schema.get_field(name)
        return name

    def _add(self, field: str, test: Callable[[Any], bool]) -> QueryBuilder:
        name = self._field(field)
        self._predicates.append(lambda record: test(record.get(name)))
        return self

    # === Predicates ===

    def where(self, predicate: Predicate) -> QueryBuilder:
        """Add an arbitrary record predicate."""
        self._predicates.append(predicate)
        return self

    def where_equals(self, field: str, value: Any) -> QueryBuilder:
        expected = index_key(value)
        return self._add(field, lambda v: index_key(v) == expected)

    def where_not_equals(self, field: str, value: Any) -> QueryBuilder:
        expected = index_key(value)
        return self._add(field, lambda v: index_key(v) != expected)

    def where_in(self, field: str, values: Iterable[Any]) -> QueryBuilder:
        allowed = {index_key(v) for v in values}
        return self._add(field, lambda v: index_key(v) in allowed)

    def where_not_in(self, field: str, values: Iterable[Any]) -> QueryBuilder:
        excluded = {index_key(v) for v in values}
        return self._add(field, lambda v: index_key(v) not in excluded)

    def where_greater_than(self, field: str, value: Any) -> QueryBuilder:
        return self._add(field, lambda v: (compare(v, value) or 0) > 0)

    def where_greater_or_equal(self, field: str, value: Any) -> QueryBuilder:
        return self._add(field, lambda v: compare(v, value) in (0, 1))

    def where_less_than(self, field: str, value: Any) -> QueryBuilder:
        return self._add(field, lambda v: (compare(v, value) or 0) < 0)

    def where_less_or_equal(self, field: str, value: Any) -> QueryBuilder:
        return self._add(field, lambda v: compare(v, value) in (0, -1))

    def where_between(self, field: str, low: Any, high: Any) -> QueryBuilder:
        """Inclusive range."""
        return self._add(
            field, lambda v: compare(v, low) in (0, 1) and compare(v, high) in (0, -1)
        )

    def _add_regex(self, field: str, regex: re.Pattern[str]) -> QueryBuilder:
        return self._add(field, lambda v: v is not None and regex.fullmatch(str(v)) is not None)

    def where_like(self, field: str, pattern: str, case_sensitive: bool = False) -> QueryBuilder:
        """SQL LIKE matching: ``%`` is any run of characters, ``_`` one character."""
        return self._add_regex(field, _like_regex(pattern, case_sensitive))

    def where_starts_with(
        self, field: str, prefix: str, case_sensitive: bool = False
    ) -> QueryBuilder:
        return self._add_regex(field, re.compile(re.escape(prefix) + ".*", _flags(case_sensitive)))

    def where_ends_with(self, field: str, suffix: str, case_sensitive: bool = False) -> QueryBuilder:
        return self._add_regex(field, re.compile(".*" + re.escape(suffix), _flags(case_sensitive)))

    def where_contains(self, field: str, text: str, case_sensitive: bool = False) -> QueryBuilder:
        return self._add_regex(field, re.compile(".*" + re.escape(text) + ".*", _flags(case_sensitive)))

    def where_null(self, field: str) -> QueryBuilder:
        return self._add(field, lambda v: v is None or v == "")

    def where_not_null(self, field: str) -> QueryBuilder:
        return self._add(field, lambda v: v is not None and v != "")

    def where_date_between(self, field: str, start: Any, end: Any) -> QueryBuilder:
        """Inclusive date range; accepts ISO strings, dates or datetimes."""
        low, high = _as_date(start), _as_date(end)
        if low is None or high is None:
            raise QueryError(
                f"Invalid date range for '{field}': {start!r} .. {end!r}",
                {"field": field, "start": str(start), "end": str(end)},
            )

        def test(value: Any) -> bool:
            day = _as_date(value)
            return day is not None and low <= day <= high

        return self._add(field, test)

    # === Shaping ===

    def order_by(self, field: str, order: str = "asc") -> QueryBuilder:
        self._order_field = self._field(field)
        self._order = normalize_order(order)
        return self

    def limit(self, count: int) -> QueryBuilder:
        if count < 0:
            raise QueryError(f"Limit must be >= 0, got {count}", {"limit": count})
        self._limit = count
        return self

    def offset(self, count: int) -> QueryBuilder:
        if count < 0:
            raise QueryError(f"Offset must be >= 0, got {count}", {"offset": count})
        self._offset = count
        return self

    def select(self, fields: Iterable[str]) -> QueryBuilder:
        self._fields = [self._field(name) for name in fields]
        return self

    # === Execution ===

    def _matches(self, record: Record) -> bool:
        return all(predicate(record) for predicate in self._predicates)

    def _run(self) -> list[Record]:
        records = self._repository.find_all(
            filter=self._matches if self._predicates else None,
            sort_by=self._order_field,
            order=self._order,
        )
        if self._offset:
            records = records[self._offset :]
        if self._limit is not None:
            records = records[: self._limit]
        if self._fields is not None:
            records = [{name: record.get(name) for name in self._fields} for record in records]
        return records

    def get(self) -> list[Record]:
        """Execute and return every matching record."""
        return self._run()

    def first(self) -> Record | None:
        saved = self._limit
        self._limit = 1
        try:
            records = self._run()
        finally:
            self._limit = saved
        return records[0] if records else None

    def count(self) -> int:
        """Number of matching records, ignoring limit and offset."""
        saved_limit, saved_offset = self._limit, self._offset
        self._limit, self._offset = None, 0
        try:
            return len(self._run())
        finally:
            self._limit, self._offset = saved_limit, saved_offset

    def exists(self) -> bool:
        return self.count() > 0

    def paginate(self, page: int = 1, page_size: int = 20) -> Page:
        """Return one page plus pagination metadata.

        Raises:
            QueryError: If page or page_size is < 1
        """
        if page < 1 or page_size < 1:
            raise QueryError(
                f"page and page_size must be >= 1 (got page={page}, page_size={page_size})",
                {"page": page, "page_size": page_size},
            )
        total = self.count()
        total_pages = math.ceil(total / page_size)

        saved_limit, saved_offset = self._limit, self._offset
        self._limit, self._offset = page_size, (page - 1) * page_size
        try:
            data = self._run()
        finally:
            self._limit, self._offset = saved_limit, saved_offset

        return Page(
            data=data,
            pagination=Pagination(
                page=page,
                page_size=page_size,
                total_count=total,
                total_pages=total_pages,
                has_next_page=page < total_pages,
                has_prev_page=page > 1,
            ),
        )

    def __repr__(self) -> str:
        return (
            f"QueryBuilder(table={self.table!r}, predicates={len(self._predicates)}, "
            f"order_by={self._order_field!r}, limit={self._limit}, offset={self._offset})"
        )

