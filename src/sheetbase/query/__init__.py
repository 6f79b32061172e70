"""Fluent query building."""

from sheetbase.query.builder import QueryBuilder

__all__ = ["QueryBuilder"]
