"""Schema registry and loaders."""

from sheetbase.schema.loader import load_schema, registry_from_dict
from sheetbase.schema.registry import SchemaRegistry

__all__ = ["SchemaRegistry", "load_schema", "registry_from_dict"]
