"""In-process tabular store, used for tests and short-lived scripts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sheetbase.exceptions import StoreError
from sheetbase.storage.base import TabularStore


@dataclass
class _Sheet:
    header: list[str]
    rows: list[list[Any]] = field(default_factory=list)


class InMemoryStore(TabularStore):
    """Keeps every table as a header plus a list of rows.

    Rows are copied on the way in and out so callers can't alias stored data.
    """

    def __init__(self) -> None:
        self._sheets: dict[str, _Sheet] = {}

    def _sheet(self, name: str) -> _Sheet:
        try:
            return self._sheets[name]
        except KeyError:
            raise StoreError(f"Table '{name}' does not exist in the store", {"table": name}) from None

    def _check_index(self, sheet: _Sheet, name: str, index: int) -> None:
        if not 0 <= index < len(sheet.rows):
            raise StoreError(
                f"Row {index} out of range for table '{name}' ({len(sheet.rows)} rows)",
                {"table": name, "index": index, "row_count": len(sheet.rows)},
            )

    def _fit(self, sheet: _Sheet, values: list[Any]) -> list[Any]:
        width = len(sheet.header)
        row = list(values[:width])
        return row + [None] * (width - len(row))

    def ensure_table(self, name: str, header: list[str]) -> None:
        sheet = self._sheets.get(name)
        if sheet is None:
            self._sheets[name] = _Sheet(header=list(header))
            return
        for column in header:
            if column not in sheet.header:
                sheet.header.append(column)
                for row in sheet.rows:
                    row.append(None)

    def read_header(self, name: str) -> list[str]:
        return list(self._sheet(name).header)

    def read_all_rows(self, name: str) -> list[list[Any]]:
        return [list(row) for row in self._sheet(name).rows]

    def append_row(self, name: str, values: list[Any]) -> None:
        sheet = self._sheet(name)
        sheet.rows.append(self._fit(sheet, values))

    def overwrite_row(self, name: str, index: int, values: list[Any]) -> None:
        sheet = self._sheet(name)
        self._check_index(sheet, name, index)
        sheet.rows[index] = self._fit(sheet, values)

    def delete_row(self, name: str, index: int) -> None:
        sheet = self._sheet(name)
        self._check_index(sheet, name, index)
        del sheet.rows[index]

    def clear_rows(self, name: str) -> int:
        sheet = self._sheet(name)
        removed = len(sheet.rows)
        sheet.rows.clear()
        return removed

    def list_tables(self) -> list[str]:
        return list(self._sheets)
