"""Custom exceptions for Sheetbase.

Every error carries a human-readable message naming the table, field,
constraint and offending value, plus a machine-readable ``context`` dict.
"Not found" is not an error: lookups return ``None`` and deletes return ``False``.
"""

from __future__ import annotations

from typing import Any


class SheetbaseError(Exception):
    """Base exception for all Sheetbase errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Return error as JSON-serializable dict."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConnectionError(SheetbaseError):
    """Failed to connect to the backing database."""

    pass


class StoreError(SheetbaseError):
    """A tabular store operation failed (missing table, bad row index...)."""

    pass


class SchemaNotFoundError(SheetbaseError):
    """Table is not registered in the schema registry."""

    def __init__(self, table_name: str, available_tables: list[str] | None = None) -> None:
        available = available_tables or []
        if available:
            message = f"Table '{table_name}' not found. Available tables: {', '.join(available)}"
        else:
            message = f"Table '{table_name}' not found. No tables are registered."

        super().__init__(message, {"table_name": table_name, "available_tables": available})
        self.table_name = table_name
        self.available_tables = available


class SchemaDefinitionError(SheetbaseError):
    """A schema definition is inconsistent (bad primary key, dangling foreign key...)."""

    def __init__(self, message: str, problems: list[str] | None = None) -> None:
        problems = problems or []
        if problems:
            message = message + "\n" + "\n".join(f"- {p}" for p in problems)
        super().__init__(message, {"problems": problems})
        self.problems = problems


class FieldNotFoundError(SheetbaseError):
    """Field does not exist on table."""

    def __init__(
        self, field_name: str, table_name: str, available_fields: list[str] | None = None
    ) -> None:
        available = available_fields or []
        if available:
            message = (
                f"Field '{field_name}' not found on '{table_name}'. "
                f"Available fields: {', '.join(available)}"
            )
        else:
            message = f"Field '{field_name}' not found on '{table_name}'. No fields defined."

        super().__init__(
            message,
            {
                "field_name": field_name,
                "table_name": table_name,
                "available_fields": available,
            },
        )
        self.field_name = field_name
        self.table_name = table_name
        self.available_fields = available


class ValidationError(SheetbaseError):
    """One or more field constraints were violated.

    ``errors`` holds every violation found, not just the first one.
    """

    def __init__(self, table_name: str, errors: list[str]) -> None:
        message = f"Validation failed for '{table_name}':\n" + "\n".join(errors)
        super().__init__(message, {"table_name": table_name, "errors": list(errors)})
        self.table_name = table_name
        self.errors = list(errors)


class UniqueConstraintError(ValidationError):
    """A unique field (or unique index) value is already taken."""

    def __init__(self, table_name: str, fields: list[str], value: Any) -> None:
        label = ", ".join(fields)
        if len(fields) == 1:
            error = f"Field '{label}' must be unique: value {value!r} already exists"
        else:
            error = f"Fields ({label}) must be unique together: value {value!r} already exists"
        super().__init__(table_name, [error])
        self.context.update({"fields": fields, "value": value})
        self.fields = fields
        self.value = value


class ForeignKeyViolationError(SheetbaseError):
    """A referenced parent record does not exist."""

    def __init__(
        self,
        table_name: str,
        field_name: str,
        referenced_table: str,
        referenced_field: str,
        value: Any,
    ) -> None:
        message = (
            f"Foreign key violation on '{table_name}.{field_name}': "
            f"no '{referenced_table}' record with {referenced_field}={value!r}."
        )
        super().__init__(
            message,
            {
                "table_name": table_name,
                "field_name": field_name,
                "referenced_table": referenced_table,
                "referenced_field": referenced_field,
                "value": value,
            },
        )
        self.table_name = table_name
        self.field_name = field_name
        self.referenced_table = referenced_table
        self.referenced_field = referenced_field
        self.value = value


class RestrictDeleteError(SheetbaseError):
    """Delete blocked by a RESTRICT foreign key."""

    def __init__(
        self,
        table_name: str,
        record_id: Any,
        related_table: str,
        related_field: str,
        related_count: int,
    ) -> None:
        message = (
            f"Cannot delete {table_name} record {record_id!r}: "
            f"{related_count} related {related_table} record(s) reference it "
            f"through '{related_field}' (on_delete=RESTRICT). "
            f"Delete related records first."
        )
        super().__init__(
            message,
            {
                "table_name": table_name,
                "record_id": record_id,
                "related_table": related_table,
                "related_field": related_field,
                "related_count": related_count,
                "suggestion": f"Delete or reassign the {related_table} records first",
            },
        )
        self.table_name = table_name
        self.record_id = record_id
        self.related_table = related_table
        self.related_field = related_field
        self.related_count = related_count


class QueryError(SheetbaseError):
    """Query construction or execution failed."""

    pass


class BusinessRuleError(SheetbaseError):
    """A service-level business rule rejected the operation."""

    pass


class InvalidStatusTransitionError(BusinessRuleError):
    """Status change not allowed from the current status."""

    def __init__(self, table_name: str, record_id: Any, current: str, requested: str) -> None:
        message = (
            f"Cannot change {table_name} record {record_id!r} "
            f"from status '{current}' to '{requested}'."
        )
        super().__init__(
            message,
            {
                "table_name": table_name,
                "record_id": record_id,
                "current_status": current,
                "requested_status": requested,
            },
        )
        self.current = current
        self.requested = requested
