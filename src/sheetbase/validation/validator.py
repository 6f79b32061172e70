"""Record validation against table schemas.

The validator never stops at the first problem: it walks every field,
collects every violation and raises a single ``ValidationError`` whose
message lists one violation per line.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import UTC, date, datetime
from typing import Any

from sheetbase.core.types import DEFAULT_NOW, DEFAULT_TODAY, FieldSpec, FieldType
from sheetbase.exceptions import ValidationError
from sheetbase.schema.registry import SchemaRegistry

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

TRUE_STRINGS = {"true", "yes", "y", "1", "on"}
FALSE_STRINGS = {"false", "no", "n", "0", "off"}

# (table, field, value) -> records holding that value
Lookup = Callable[[str, str, Any], list[dict[str, Any]]]


class _Invalid(Exception):
    """Internal signal carrying one violation message."""


def utc_now_iso() -> str:
    """Current UTC timestamp as ISO-8601."""
    return datetime.now(UTC).isoformat()


def today_iso() -> str:
    """Current UTC date as YYYY-MM-DD."""
    return datetime.now(UTC).date().isoformat()


def is_missing(value: Any) -> bool:
    return value is None or value == ""


def materialize_default(default: Any) -> Any:
    """Resolve the TODAY / NOW tokens; other defaults are returned as-is."""
    if default == DEFAULT_TODAY:
        return today_iso()
    if default == DEFAULT_NOW:
        return utc_now_iso()
    return default


def _check_length(spec: FieldSpec, value: str) -> None:
    if spec.min_length is not None and len(value) < spec.min_length:
        raise _Invalid(
            f"Field '{spec.name}' must be at least {spec.min_length} characters "
            f"(got {len(value)}: {value!r})"
        )
    if spec.max_length is not None and len(value) > spec.max_length:
        raise _Invalid(
            f"Field '{spec.name}' must be at most {spec.max_length} characters "
            f"(got {len(value)})"
        )


def _check_string(spec: FieldSpec, value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise _Invalid(f"Field '{spec.name}' must be a string, got {type(value).__name__}")
    text = value if isinstance(value, str) else str(value)
    _check_length(spec, text)
    if spec.pattern is not None and not re.fullmatch(spec.pattern, text):
        raise _Invalid(f"Field '{spec.name}' value {text!r} does not match pattern {spec.pattern!r}")
    return text


def _check_text(spec: FieldSpec, value: Any) -> str:
    if not isinstance(value, str):
        raise _Invalid(f"Field '{spec.name}' must be text, got {type(value).__name__}")
    _check_length(spec, value)
    return value


def _check_number(spec: FieldSpec, value: Any) -> int | float:
    if isinstance(value, bool):
        raise _Invalid(f"Field '{spec.name}' must be a number, got boolean {value!r}")
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        raw = value.strip()
        try:
            number = int(raw)
        except ValueError:
            try:
                number = float(raw)
            except ValueError:
                raise _Invalid(f"Field '{spec.name}' must be a number, got {value!r}") from None
    else:
        raise _Invalid(f"Field '{spec.name}' must be a number, got {type(value).__name__}")

    if number != number:  # NaN
        raise _Invalid(f"Field '{spec.name}' must be a number, got NaN")
    if spec.min is not None and number < spec.min:
        raise _Invalid(f"Field '{spec.name}' must be >= {spec.min:g} (got {number})")
    if spec.max is not None and number > spec.max:
        raise _Invalid(f"Field '{spec.name}' must be <= {spec.max:g} (got {number})")
    return number


def _check_email(spec: FieldSpec, value: Any) -> str:
    if not isinstance(value, str):
        raise _Invalid(f"Field '{spec.name}' must be an email address, got {type(value).__name__}")
    email = value.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise _Invalid(f"Field '{spec.name}' has invalid email format: {value!r}")
    _check_length(spec, email)
    return email


def _check_enum(spec: FieldSpec, value: Any) -> str:
    allowed = spec.values or []
    if value not in allowed:
        raise _Invalid(
            f"Field '{spec.name}' must be one of [{', '.join(allowed)}] (got {value!r})"
        )
    return value


def _check_timestamp(spec: FieldSpec, value: Any) -> str:
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(raw)
        except ValueError:
            raise _Invalid(
                f"Field '{spec.name}' must be an ISO-8601 timestamp (got {value!r})"
            ) from None
    else:
        raise _Invalid(f"Field '{spec.name}' must be a timestamp, got {type(value).__name__}")

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.isoformat()


def _check_date(spec: FieldSpec, value: Any) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        raw = value.strip()
        if DATE_PATTERN.match(raw):
            try:
                return date.fromisoformat(raw).isoformat()
            except ValueError:
                pass
        raise _Invalid(f"Field '{spec.name}' must be a date in YYYY-MM-DD format (got {value!r})")
    raise _Invalid(f"Field '{spec.name}' must be a date, got {type(value).__name__}")


def _check_boolean(spec: FieldSpec, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    raise _Invalid(f"Field '{spec.name}' must be a boolean (got {value!r})")


TYPE_CHECKS: dict[FieldType, Callable[[FieldSpec, Any], Any]] = {
    FieldType.STRING: _check_string,
    FieldType.TEXT: _check_text,
    FieldType.NUMBER: _check_number,
    FieldType.EMAIL: _check_email,
    FieldType.ENUM: _check_enum,
    FieldType.TIMESTAMP: _check_timestamp,
    FieldType.DATE: _check_date,
    FieldType.BOOLEAN: _check_boolean,
}


class Validator:
    """Checks candidate records against the registry's table schemas."""

    def __init__(self, registry: SchemaRegistry, lookup: Lookup | None = None) -> None:
        """Initialize the validator.

        Args:
            registry: Schema registry to validate against
            lookup: Callable returning the records of a table holding a field value,
                required by ``is_unique``
        """
        self._registry = registry
        self._lookup = lookup

    @property
    def registry(self) -> SchemaRegistry:
        return self._registry

    @property
    def has_lookup(self) -> bool:
        return self._lookup is not None

    def bind_lookup(self, lookup: Lookup) -> None:
        self._lookup = lookup

    def validate(
        self,
        table: str,
        candidate: dict[str, Any],
        partial: bool = False,
    ) -> dict[str, Any]:
        """Validate a record and return it with defaults applied and values normalized.

        Args:
            table: Table name
            candidate: Field values to check
            partial: Update mode; absent fields are skipped instead of defaulted or required

        Returns:
            Validated record, keys in schema order

        Raises:
            SchemaNotFoundError: If the table is not registered
            ValidationError: With every violation found
        """
        schema = self._registry.get(table)
        errors: list[str] = []
        result: dict[str, Any] = {}

        for spec in schema.fields:
            value = candidate.get(spec.name)

            if is_missing(value):
                if partial:
                    if spec.name in candidate:
                        result[spec.name] = value
                    continue
                if spec.required and not (spec.auto_generate or spec.computed):
                    errors.append(f"Field '{spec.name}' is required")
                    continue
                if spec.auto_generate or spec.computed:
                    if spec.name in candidate:
                        result[spec.name] = value
                    continue
                if spec.default is not None:
                    result[spec.name] = materialize_default(spec.default)
                    continue
                if spec.name in candidate:
                    result[spec.name] = value
                continue

            try:
                result[spec.name] = TYPE_CHECKS[spec.type](spec, value)
            except _Invalid as e:
                errors.append(str(e))

        for name in candidate:
            if not schema.has_field(name):
                errors.append(
                    f"Unknown field '{name}' for table '{table}' "
                    f"(allowed: {', '.join(schema.field_names)})"
                )

        if errors:
            logger.debug(f"Validation failed for '{table}' with {len(errors)} error(s)")
            raise ValidationError(table, errors)
        return result

    def is_unique(
        self,
        table: str,
        field: str,
        value: Any,
        exclude_id: Any = None,
    ) -> bool:
        """Check whether ``value`` is free to use for ``field``.

        Args:
            table: Table name
            field: Field name
            value: Candidate value
            exclude_id: Primary key of the record being updated, ignored as a collision

        Returns:
            True if no other record holds the value
        """
        schema = self._registry.get(table)
        schema.get_field(field)
        if self._lookup is None:
            raise RuntimeError("Validator has no record lookup bound; cannot check uniqueness")

        holders = self._lookup(table, field, value)
        if exclude_id is None:
            return not holders
        return all(record.get(schema.primary_key) == exclude_id for record in holders)
