"""Load schema definitions from JSON files."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from sheetbase.exceptions import SchemaDefinitionError
from sheetbase.schema.registry import SchemaRegistry


def registry_from_dict(data: dict[str, Any] | list[dict[str, Any]]) -> SchemaRegistry:
    """Build a registry from parsed JSON.

    Accepts either ``{"tables": [...]}`` or a bare list of table definitions.
    """
    if isinstance(data, dict):
        if "tables" not in data:
            raise SchemaDefinitionError("Schema document must contain a 'tables' list")
        tables = data["tables"]
    else:
        tables = data

    if not isinstance(tables, list):
        raise SchemaDefinitionError("'tables' must be a list of table definitions")
    return SchemaRegistry(tables)


def load_schema(path: str | Path) -> SchemaRegistry:
    """Read a JSON schema file and build a registry.

    Raises:
        FileNotFoundError: If the file doesn't exist
        SchemaDefinitionError: If the file is not valid JSON or the schema is invalid
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Schema file not found: {path}")

    with file_path.open("r") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise SchemaDefinitionError(f"Invalid JSON in schema file {path}: {e.msg}") from e
    return registry_from_dict(data)
