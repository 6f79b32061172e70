"""Input parsing utilities for CLI commands."""

import json
import re
from pathlib import Path
from typing import Any

from sheetbase.core.types import FieldType

WHERE_PATTERN = re.compile(r"^\s*([A-Za-z_][\w]*)\s*(>=|<=|!=|=|>|<|~)\s*(.*?)\s*$", re.DOTALL)

OPERATORS = {
    "=": "where_equals",
    "!=": "where_not_equals",
    ">": "where_greater_than",
    ">=": "where_greater_or_equal",
    "<": "where_less_than",
    "<=": "where_less_or_equal",
    "~": "where_like",
}


def parse_value(raw: str) -> Any:
    """Parse a literal as JSON when possible, else keep it as a string.

    Examples:
        "42" → 42, "true" → True, "null" → None, "alice" → "alice"
    """
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def parse_record_id(raw: str, field_type: FieldType) -> Any:
    """Convert a primary key typed on the command line to the key's field type.

    Numeric keys are parsed (``"3"`` → 3); every other key stays text.
    """
    if field_type == FieldType.NUMBER:
        value = parse_value(raw)
        if isinstance(value, int | float) and not isinstance(value, bool):
            return value
    return raw


def parse_where(expression: str) -> tuple[str, str, Any]:
    """Parse a where expression.

    Format: field<op>value, op one of = != > >= < <= ~ (``~`` is a LIKE pattern)

    Examples:
        "status=pending" → ("status", "where_equals", "pending")
        "total_amount>=100" → ("total_amount", "where_greater_or_equal", 100)
        "email~%@example.com" → ("email", "where_like", "%@example.com")

    Returns:
        (field, builder method name, value)

    Raises:
        ValueError: If the expression is malformed
    """
    match = WHERE_PATTERN.match(expression)
    if match is None:
        raise ValueError(
            f"Invalid where clause: '{expression}'. "
            f"Expected field<op>value with op in {' '.join(OPERATORS)}"
        )
    field, op, raw = match.groups()
    # LIKE patterns are always text
    value = raw if op == "~" else parse_value(raw)
    return field, OPERATORS[op], value


def read_json_file(path: str) -> dict[str, Any]:
    """Read single JSON object from file.

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If file contains invalid JSON
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    with file_path.open("r") as f:
        return json.load(f)


def read_jsonl_file(path: str) -> list[dict[str, Any]]:
    """Read JSON Lines (JSONL) file, one object per line.

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If any line contains invalid JSON
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    records = []
    with file_path.open("r") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as e:
                raise json.JSONDecodeError(
                    f"Invalid JSON on line {line_num}: {e.msg}",
                    e.doc,
                    e.pos,
                ) from e

    return records
