"""Schema registry: the read-only table catalogue consulted by every component."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from sheetbase.core.types import FieldSpec, OnDeleteAction, TableSchema
from sheetbase.exceptions import SchemaDefinitionError, SchemaNotFoundError

logger = logging.getLogger(__name__)


def _coerce_table(table: TableSchema | dict[str, Any]) -> TableSchema:
    if isinstance(table, TableSchema):
        return table
    try:
        return TableSchema.model_validate(table)
    except PydanticValidationError as e:
        name = table.get("name", "<unnamed>") if isinstance(table, dict) else "<unnamed>"
        problems = [err["msg"] for err in e.errors()]
        raise SchemaDefinitionError(f"Invalid definition for table '{name}'", problems) from e


class SchemaRegistry:
    """Maps table names to their ``TableSchema``.

    The registry is built once from a list of definitions and has no
    mutation API afterwards. Cross-table rules (foreign keys pointing at
    registered tables and fields) are checked at construction.
    """

    def __init__(self, tables: Iterable[TableSchema | dict[str, Any]]) -> None:
        """Initialize the registry.

        Args:
            tables: Table definitions (``TableSchema`` or plain dicts)

        Raises:
            SchemaDefinitionError: If a definition is invalid or inconsistent
        """
        self._tables: dict[str, TableSchema] = {}
        for table in tables:
            schema = _coerce_table(table)
            if schema.name in self._tables:
                raise SchemaDefinitionError(f"Table '{schema.name}' is registered twice")
            self._tables[schema.name] = schema
        self._check_references()
        logger.debug(f"Schema registry loaded with tables: {', '.join(self._tables)}")

    def _check_references(self) -> None:
        problems = []
        storage_names: dict[str, str] = {}
        for schema in self._tables.values():
            storage = self.storage_name(schema.name)
            if storage in storage_names:
                problems.append(
                    f"'{schema.name}' and '{storage_names[storage]}' share storage name '{storage}'"
                )
            storage_names[storage] = schema.name

            for spec in schema.foreign_key_fields:
                fk = spec.foreign_key
                if fk is None:
                    continue
                parent = self._tables.get(fk.table)
                if parent is None:
                    problems.append(
                        f"{schema.name}.{spec.name} references unknown table '{fk.table}'"
                    )
                elif not parent.has_field(fk.field):
                    problems.append(
                        f"{schema.name}.{spec.name} references unknown field "
                        f"'{fk.table}.{fk.field}'"
                    )
        if problems:
            raise SchemaDefinitionError("Schema registry is inconsistent", problems)

    def get(self, table: str) -> TableSchema:
        """Get a table schema.

        Raises:
            SchemaNotFoundError: If the table is not registered
        """
        try:
            return self._tables[table]
        except KeyError:
            raise SchemaNotFoundError(table, self.list_tables()) from None

    def list_tables(self) -> list[str]:
        """Registered table names in declaration order."""
        return list(self._tables)

    def field_names(self, table: str) -> list[str]:
        return self.get(table).field_names

    def primary_key(self, table: str) -> str:
        return self.get(table).primary_key

    def storage_name(self, table: str) -> str:
        schema = self.get(table)
        return schema.storage_name or schema.name

    def incoming_foreign_keys(self, table: str) -> list[tuple[str, FieldSpec]]:
        """Fields in any registered table (self included) that reference ``table``.

        Returns:
            List of (child table name, child field spec) pairs
        """
        self.get(table)
        incoming = []
        for schema in self._tables.values():
            for spec in schema.foreign_key_fields:
                if spec.foreign_key is not None and spec.foreign_key.table == table:
                    incoming.append((schema.name, spec))
        return incoming

    def cascade_children(self, table: str) -> list[tuple[str, FieldSpec]]:
        return [
            (child, spec)
            for child, spec in self.incoming_foreign_keys(table)
            if spec.foreign_key is not None and spec.foreign_key.on_delete == OnDeleteAction.CASCADE
        ]

    def describe(self) -> dict[str, Any]:
        """Return a JSON-serializable summary of all tables."""
        return {
            "tables": {name: self.describe_table(name) for name in self._tables},
            "total_tables": len(self._tables),
            "total_fields": sum(len(s.fields) for s in self._tables.values()),
        }

    def describe_table(self, table: str) -> dict[str, Any]:
        schema = self.get(table)
        info = schema.model_dump(mode="json", exclude_none=True)
        info["incoming_foreign_keys"] = [
            {
                "table": child,
                "field": spec.name,
                "on_delete": spec.foreign_key.on_delete.value if spec.foreign_key else None,
            }
            for child, spec in self.incoming_foreign_keys(table)
        ]
        return info

    def __contains__(self, table: object) -> bool:
        return table in self._tables

    def __iter__(self) -> Iterator[TableSchema]:
        return iter(self._tables.values())

    def __len__(self) -> int:
        return len(self._tables)
