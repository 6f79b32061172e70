"""Sheetbase - a schema-driven relational layer over tabular row stores.

Tables are plain rows under a header (an in-memory sheet or one SQL table
per sheet). Sheetbase adds typed columns, validation, primary/unique
keys, foreign keys with RESTRICT/CASCADE deletes, auto-generated fields,
cached field indexes and a fluent query builder on top.

Example:
    from sheetbase import Sheetbase
    from sheetbase.services import COMMERCE_TABLES, OrderService

    db = Sheetbase("sqlite:///./shop.db", schema=COMMERCE_TABLES)
    db.initialize()

    customers = db.repository("Customers")
    alice = customers.create({"name": "Alice", "email": "alice@example.com"})

    products = db.repository("Products")
    widget = products.create({"sku": "WID-1", "name": "Widget", "price": 9.5})

    result = OrderService(db).create_order(
        alice["id"], [{"product_id": widget["id"], "quantity": 3}]
    )
    order = result.unwrap()["order"]

    big = db.query("Orders").where_greater_than("total_amount", 20).get()
"""

from sheetbase.config import Settings
from sheetbase.core.engine import Sheetbase, create_store
from sheetbase.core.types import (
    BatchItem,
    BatchResult,
    FieldSpec,
    FieldType,
    ForeignKeySpec,
    IndexSpec,
    OnDeleteAction,
    Page,
    Pagination,
    TableSchema,
)
from sheetbase.data.repository import Repository
from sheetbase.exceptions import (
    BusinessRuleError,
    FieldNotFoundError,
    ForeignKeyViolationError,
    InvalidStatusTransitionError,
    QueryError,
    RestrictDeleteError,
    SchemaDefinitionError,
    SchemaNotFoundError,
    SheetbaseError,
    StoreError,
    UniqueConstraintError,
    ValidationError,
)
from sheetbase.query.builder import QueryBuilder
from sheetbase.schema.loader import load_schema
from sheetbase.schema.registry import SchemaRegistry
from sheetbase.storage import InMemoryStore, SQLTableStore, TabularStore
from sheetbase.validation.validator import Validator

__version__ = "0.1.0"

__all__ = [
    # Main
    "Sheetbase",
    "Settings",
    "create_store",
    "Repository",
    "QueryBuilder",
    "SchemaRegistry",
    "Validator",
    "load_schema",
    # Stores
    "TabularStore",
    "InMemoryStore",
    "SQLTableStore",
    # Types
    "FieldType",
    "OnDeleteAction",
    "FieldSpec",
    "ForeignKeySpec",
    "IndexSpec",
    "TableSchema",
    "BatchItem",
    "BatchResult",
    "Page",
    "Pagination",
    # Exceptions
    "SheetbaseError",
    "SchemaNotFoundError",
    "SchemaDefinitionError",
    "FieldNotFoundError",
    "ValidationError",
    "UniqueConstraintError",
    "ForeignKeyViolationError",
    "RestrictDeleteError",
    "QueryError",
    "StoreError",
    "BusinessRuleError",
    "InvalidStatusTransitionError",
]
