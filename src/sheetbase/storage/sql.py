"""SQL-backed tabular store.

Each logical sheet becomes one SQL table: an autoincrement ``_row_id``
column that fixes row order, plus one JSON column per header name so
cell values keep their scalar type (str, int, float, bool, None).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    Column,
    Integer,
    MetaData,
    Table,
    delete,
    insert,
    inspect,
    select,
    text,
    update,
)

from sheetbase.exceptions import StoreError
from sheetbase.storage.base import TabularStore

if TYPE_CHECKING:
    from sqlalchemy import Connection

    from sheetbase.core.connection import DatabaseConnection

logger = logging.getLogger(__name__)

ROW_ID_COLUMN = "_row_id"


def _cell_type() -> JSON:
    return JSON(none_as_null=True)


class SQLTableStore(TabularStore):
    """Stores sheets as SQL tables through SQLAlchemy Core."""

    def __init__(self, connection: DatabaseConnection) -> None:
        """Initialize the store.

        Args:
            connection: Database connection to use
        """
        self._connection = connection
        self._tables: dict[str, Table] = {}

    @property
    def connection(self) -> DatabaseConnection:
        return self._connection

    def _build_table(self, name: str, header: list[str]) -> Table:
        columns: list[Column[Any]] = [
            Column(ROW_ID_COLUMN, Integer, primary_key=True, autoincrement=True)
        ]
        columns.extend(Column(column, _cell_type()) for column in header)
        return Table(name, MetaData(), *columns)

    def _table(self, name: str) -> Table:
        table = self._tables.get(name)
        if table is not None:
            return table

        inspector = inspect(self._connection.engine)
        if not inspector.has_table(name):
            raise StoreError(f"Table '{name}' does not exist in the store", {"table": name})
        header = [c["name"] for c in inspector.get_columns(name) if c["name"] != ROW_ID_COLUMN]
        table = self._build_table(name, header)
        self._tables[name] = table
        return table

    def _value_columns(self, table: Table) -> list[Column[Any]]:
        return [c for c in table.columns if c.name != ROW_ID_COLUMN]

    def _row_values(self, table: Table, values: list[Any]) -> dict[str, Any]:
        columns = self._value_columns(table)
        padded = list(values[: len(columns)]) + [None] * (len(columns) - len(values))
        return {column.name: value for column, value in zip(columns, padded, strict=True)}

    def _row_id_at(self, conn: Connection, table: Table, name: str, index: int) -> int:
        row_id = None
        if index >= 0:
            row_id = conn.execute(
                select(table.c[ROW_ID_COLUMN])
                .order_by(table.c[ROW_ID_COLUMN])
                .offset(index)
                .limit(1)
            ).scalar()
        if row_id is None:
            raise StoreError(
                f"Row {index} out of range for table '{name}'",
                {"table": name, "index": index},
            )
        return row_id

    def ensure_table(self, name: str, header: list[str]) -> None:
        with self._connection.engine.begin() as conn:
            inspector = inspect(conn)
            if not inspector.has_table(name):
                self._build_table(name, header).create(conn)
                logger.info(f"Created table '{name}' with {len(header)} columns")
            else:
                existing = [
                    c["name"] for c in inspector.get_columns(name) if c["name"] != ROW_ID_COLUMN
                ]
                preparer = conn.dialect.identifier_preparer
                cell_ddl = _cell_type().compile(dialect=conn.dialect)
                for column in header:
                    if column in existing:
                        continue
                    conn.execute(
                        text(
                            f"ALTER TABLE {preparer.quote(name)} "
                            f"ADD COLUMN {preparer.quote(column)} {cell_ddl}"
                        )
                    )
                    existing.append(column)
                    logger.info(f"Added column '{column}' to table '{name}'")
        self._tables.pop(name, None)

    def read_header(self, name: str) -> list[str]:
        return [c.name for c in self._value_columns(self._table(name))]

    def read_all_rows(self, name: str) -> list[list[Any]]:
        table = self._table(name)
        query = select(*self._value_columns(table)).order_by(table.c[ROW_ID_COLUMN])
        with self._connection.engine.connect() as conn:
            return [list(row) for row in conn.execute(query)]

    def append_row(self, name: str, values: list[Any]) -> None:
        table = self._table(name)
        with self._connection.engine.begin() as conn:
            conn.execute(insert(table).values(self._row_values(table, values)))

    def overwrite_row(self, name: str, index: int, values: list[Any]) -> None:
        table = self._table(name)
        with self._connection.engine.begin() as conn:
            row_id = self._row_id_at(conn, table, name, index)
            conn.execute(
                update(table)
                .where(table.c[ROW_ID_COLUMN] == row_id)
                .values(self._row_values(table, values))
            )

    def delete_row(self, name: str, index: int) -> None:
        table = self._table(name)
        with self._connection.engine.begin() as conn:
            row_id = self._row_id_at(conn, table, name, index)
            conn.execute(delete(table).where(table.c[ROW_ID_COLUMN] == row_id))

    def clear_rows(self, name: str) -> int:
        table = self._table(name)
        with self._connection.engine.begin() as conn:
            result = conn.execute(delete(table))
            return result.rowcount

    def list_tables(self) -> list[str]:
        return inspect(self._connection.engine).get_table_names()

    def close(self) -> None:
        self._tables.clear()
        self._connection.close()
