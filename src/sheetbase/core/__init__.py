"""Core components for Sheetbase."""

from sheetbase.core.connection import DatabaseConnection
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

__all__ = [
    "DatabaseConnection",
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
]
