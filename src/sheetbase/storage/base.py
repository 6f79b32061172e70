"""Tabular store interface.

A tabular store is a named collection of tables, each a header row
followed by data rows. Every operation is a single bulk call. Row
indexes are 0-based and count data rows only (the header is excluded).

Usage:
    from sheetbase.storage.base import TabularStore

    def dump(store: TabularStore) -> None:
        store.ensure_table("Customers", ["id", "name"])
        store.append_row("Customers", ["c1", "Alice"])
        rows = store.read_all_rows("Customers")
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class TabularStore(ABC):
    """Row store backing the repositories.

    Implementations raise ``StoreError`` for a missing table or an
    out-of-range row index.
    """

    @abstractmethod
    def ensure_table(self, name: str, header: list[str]) -> None:
        """Create the table with ``header`` if missing.

        Idempotent. When the table exists, header names it lacks are
        appended as new columns; existing columns are never dropped.
        """

    @abstractmethod
    def read_header(self, name: str) -> list[str]:
        """Return the header row of a table."""

    @abstractmethod
    def read_all_rows(self, name: str) -> list[list[Any]]:
        """Return all data rows in storage order (header excluded)."""

    @abstractmethod
    def append_row(self, name: str, values: list[Any]) -> None:
        """Append one row after the last data row."""

    @abstractmethod
    def overwrite_row(self, name: str, index: int, values: list[Any]) -> None:
        """Replace the data row at ``index`` in place."""

    @abstractmethod
    def delete_row(self, name: str, index: int) -> None:
        """Remove the data row at ``index``; later rows shift up by one."""

    @abstractmethod
    def clear_rows(self, name: str) -> int:
        """Remove every data row, keeping the header.

        Returns:
            Number of rows removed
        """

    @abstractmethod
    def list_tables(self) -> list[str]:
        """Names of existing tables."""

    def has_table(self, name: str) -> bool:
        return name in self.list_tables()

    def close(self) -> None:  # noqa: B027
        """Release resources held by the store."""
