"""Core types and specifications for Sheetbase.

Schema definitions are pydantic models so a malformed definition fails
when it is declared rather than on first use. All types are
JSON-serializable via ``model_dump()``.
"""

from __future__ import annotations

import re
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from sheetbase.exceptions import FieldNotFoundError

# Special default tokens materialized by the validator
DEFAULT_TODAY = "TODAY"
DEFAULT_NOW = "NOW"


class FieldType(StrEnum):
    """Supported column types."""

    STRING = "string"
    NUMBER = "number"
    EMAIL = "email"
    ENUM = "enum"
    TIMESTAMP = "timestamp"
    DATE = "date"
    TEXT = "text"
    BOOLEAN = "boolean"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid field type values."""
        return [t.value for t in cls]


class OnDeleteAction(StrEnum):
    """Referential actions when a referenced parent record is deleted."""

    RESTRICT = "RESTRICT"  # Block the delete while children exist
    CASCADE = "CASCADE"  # Delete children first, recursively

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid on_delete action values."""
        return [a.value for a in cls]


class ForeignKeySpec(BaseModel):
    """Reference from a child field to a parent table field."""

    table: str = Field(..., description="Referenced (parent) table name")
    field: str = Field(..., description="Referenced field on the parent table")
    on_delete: OnDeleteAction = Field(
        default=OnDeleteAction.RESTRICT, description="Action when the parent is deleted"
    )


class FieldSpec(BaseModel):
    """Specification for one column: type, constraints, defaults and generation rules."""

    name: str = Field(..., description="Field name (snake_case recommended)")
    type: FieldType = Field(default=FieldType.STRING, description="Field data type")
    required: bool = Field(default=False, description="Whether a value must be supplied")
    unique: bool = Field(default=False, description="Whether values must be unique")
    default: Any = Field(default=None, description="Default value, or TODAY / NOW")
    auto_generate: bool = Field(
        default=False, description="Filled on create (uuid, timestamp or date)"
    )
    auto_update: bool = Field(default=False, description="Stamped with now on every write")
    min: float | None = Field(default=None, description="Minimum numeric value")
    max: float | None = Field(default=None, description="Maximum numeric value")
    min_length: int | None = Field(default=None, ge=0, description="Minimum string length")
    max_length: int | None = Field(default=None, ge=0, description="Maximum string length")
    pattern: str | None = Field(default=None, description="Regex the whole value must match")
    values: list[str] | None = Field(default=None, description="Allowed values for enum")
    foreign_key: ForeignKeySpec | None = Field(default=None, description="Parent reference")
    computed: bool = Field(default=False, description="Filled by application code")
    description: str | None = Field(default=None, description="Human-readable description")

    @model_validator(mode="after")
    def _check_constraints(self) -> FieldSpec:
        if self.type == FieldType.ENUM and not self.values:
            raise ValueError(f"Enum field '{self.name}' must declare a non-empty 'values' list")
        if self.values is not None and self.type != FieldType.ENUM:
            raise ValueError(f"Field '{self.name}' declares 'values' but is not an enum")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"Field '{self.name}': min ({self.min}) exceeds max ({self.max})")
        if (
            self.min_length is not None
            and self.max_length is not None
            and self.min_length > self.max_length
        ):
            raise ValueError(
                f"Field '{self.name}': min_length ({self.min_length}) "
                f"exceeds max_length ({self.max_length})"
            )
        if self.pattern is not None:
            try:
                re.compile(self.pattern)
            except re.error as e:
                raise ValueError(f"Field '{self.name}': invalid pattern: {e}") from e
        return self


class IndexSpec(BaseModel):
    """Declared index over one or more fields."""

    fields: list[str] = Field(..., min_length=1)
    unique: bool = False


class TableSchema(BaseModel):
    """Declarative definition of one table.

    Field order is the physical column order in the backing store.
    """

    name: str = Field(..., description="Logical table name (e.g. 'Customers')")
    storage_name: str | None = Field(
        default=None, description="Name in the backing store (defaults to name)"
    )
    primary_key: str = Field(default="id", description="Primary key field name")
    fields: list[FieldSpec] = Field(..., min_length=1)
    indexes: list[IndexSpec] = Field(default_factory=list)
    description: str | None = None

    @model_validator(mode="after")
    def _check_layout(self) -> TableSchema:
        names = [f.name for f in self.fields]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Table '{self.name}' has duplicate fields: {', '.join(duplicates)}")
        if self.primary_key not in names:
            raise ValueError(
                f"Table '{self.name}': primary key '{self.primary_key}' is not a declared field"
            )
        for index in self.indexes:
            missing = [f for f in index.fields if f not in names]
            if missing:
                raise ValueError(
                    f"Table '{self.name}': index references unknown fields: {', '.join(missing)}"
                )
        if self.storage_name is None:
            self.storage_name = self.name
        return self

    @property
    def field_names(self) -> list[str]:
        """Field names in column order."""
        return [f.name for f in self.fields]

    def has_field(self, name: str) -> bool:
        return any(f.name == name for f in self.fields)

    def get_field(self, name: str) -> FieldSpec:
        """Get a field spec by name.

        Raises:
            FieldNotFoundError: If the field is not declared
        """
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise FieldNotFoundError(name, self.name, self.field_names)

    @property
    def foreign_key_fields(self) -> list[FieldSpec]:
        return [f for f in self.fields if f.foreign_key is not None]

    def unique_constraints(self) -> list[list[str]]:
        """Field groups whose combined value must be unique.

        Includes the primary key, every ``unique`` field and every unique index.
        """
        groups: list[list[str]] = [[self.primary_key]]
        for spec in self.fields:
            if spec.unique and [spec.name] not in groups:
                groups.append([spec.name])
        for index in self.indexes:
            if index.unique and index.fields not in groups:
                groups.append(list(index.fields))
        return groups


# === Result types ===


class BatchItem(BaseModel):
    """Outcome of one record in a batch create."""

    index: int
    ok: bool
    record: dict[str, Any] | None = None
    error: str | None = None
    error_type: str | None = None
    data: dict[str, Any] | None = None


class BatchResult(BaseModel):
    """Per-record results of ``Repository.batch_create`` (not atomic)."""

    items: list[BatchItem] = Field(default_factory=list)

    @property
    def succeeded(self) -> list[dict[str, Any]]:
        return [item.record for item in self.items if item.ok and item.record is not None]

    @property
    def failed(self) -> list[BatchItem]:
        return [item for item in self.items if not item.ok]

    @property
    def success_count(self) -> int:
        return sum(1 for item in self.items if item.ok)

    @property
    def failure_count(self) -> int:
        return len(self.items) - self.success_count


class Pagination(BaseModel):
    """Pagination metadata."""

    page: int
    page_size: int
    total_count: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class Page(BaseModel):
    """One page of query results."""

    data: list[dict[str, Any]]
    pagination: Pagination
