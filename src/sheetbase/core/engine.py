"""Main Sheetbase facade."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from sheetbase.config import MEMORY_URL, Settings
from sheetbase.core.connection import DatabaseConnection
from sheetbase.core.types import TableSchema
from sheetbase.data.repository import Repository
from sheetbase.exceptions import SchemaDefinitionError
from sheetbase.query.builder import QueryBuilder
from sheetbase.schema.loader import load_schema
from sheetbase.schema.registry import SchemaRegistry
from sheetbase.storage.base import TabularStore
from sheetbase.storage.memory import InMemoryStore
from sheetbase.storage.sql import SQLTableStore
from sheetbase.validation.validator import Validator

logger = logging.getLogger(__name__)

SchemaSource = SchemaRegistry | Iterable[TableSchema | dict[str, Any]]


def create_store(url: str, echo: bool = False) -> TabularStore:
    """Create a tabular store from a URL.

    Args:
        url: ``memory://`` for an in-process store, or a SQLAlchemy URL
             (``sqlite:///...``, ``postgresql://...``) for the SQL store
        echo: Echo SQL statements (SQL store only)
    """
    if url == MEMORY_URL or url.startswith("memory:"):
        return InMemoryStore()
    return SQLTableStore(DatabaseConnection(url, echo=echo))


class Sheetbase:
    """Entry point: owns the schema registry, the store and one repository per table.

    Example:
        db = Sheetbase("memory://", schema=COMMERCE_TABLES)
        db.initialize()

        customers = db.repository("Customers")
        alice = customers.create({"name": "Alice", "email": "alice@example.com"})

        pending = db.query("Orders").where_equals("status", "pending").get()
    """

    def __init__(
        self,
        store: TabularStore | str | None = None,
        schema: SchemaSource | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize Sheetbase.

        Args:
            store: A ``TabularStore`` or a store URL (defaults to ``settings.database_url``)
            schema: Registry or table definitions (defaults to ``settings.schema_path``)
            settings: Runtime settings (defaults to ``Settings()``)

        Raises:
            SchemaDefinitionError: If no schema is given or it is invalid
        """
        self._settings = settings or Settings()

        if isinstance(store, TabularStore):
            self._store = store
        else:
            url = store or self._settings.database_url
            self._store = create_store(url, echo=self._settings.echo_sql)

        if isinstance(schema, SchemaRegistry):
            self._registry = schema
        elif schema is not None:
            self._registry = SchemaRegistry(schema)
        elif self._settings.schema_path:
            self._registry = load_schema(self._settings.schema_path)
        else:
            raise SchemaDefinitionError(
                "No schema given. Pass schema=... or set SHEETBASE_SCHEMA to a JSON schema file."
            )

        self._validator = Validator(self._registry, lookup=self._lookup)
        self._repositories: dict[str, Repository] = {}

    def _lookup(self, table: str, field: str, value: Any) -> list[dict[str, Any]]:
        return self.repository(table).find_by(field, value)

    @property
    def registry(self) -> SchemaRegistry:
        return self._registry

    @property
    def store(self) -> TabularStore:
        return self._store

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def validator(self) -> Validator:
        return self._validator

    def initialize(self) -> None:
        """Create every registered table (header row in schema order) if missing.

        Idempotent; columns added to a schema are appended to existing tables.
        """
        for schema in self._registry:
            self.repository(schema.name).ensure_table()
        logger.info(f"Initialized {len(self._registry)} table(s)")

    def repository(self, table: str) -> Repository:
        """Get the repository for a table (one instance per table).

        Raises:
            SchemaNotFoundError: If the table is not registered
        """
        repo = self._repositories.get(table)
        if repo is None:
            repo = Repository(
                table,
                self._store,
                self._registry,
                validator=self._validator,
                resolver=self.repository,
                index_ttl=self._settings.index_ttl_seconds,
            )
            self._repositories[table] = repo
        return repo

    def query(self, table: str) -> QueryBuilder:
        """Start a query on a table."""
        return QueryBuilder(self.repository(table))

    def list_tables(self) -> list[str]:
        return self._registry.list_tables()

    def describe(self) -> dict[str, Any]:
        """Describe all tables, with record counts when the store has them."""
        info = self._registry.describe()
        existing = set(self._store.list_tables())
        for name, table_info in info["tables"].items():
            storage = self._registry.storage_name(name)
            table_info["record_count"] = (
                len(self._store.read_all_rows(storage)) if storage in existing else None
            )
        return info

    def describe_table(self, table: str) -> dict[str, Any]:
        info = self._registry.describe_table(table)
        storage = self._registry.storage_name(table)
        info["record_count"] = (
            len(self._store.read_all_rows(storage)) if self._store.has_table(storage) else None
        )
        return info

    def close(self) -> None:
        """Drop cached repositories and close the store."""
        for repo in self._repositories.values():
            repo.invalidate_indexes()
        self._repositories.clear()
        self._store.close()

    def __enter__(self) -> Sheetbase:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()
