"""Tabular store backends."""

from sheetbase.storage.base import TabularStore
from sheetbase.storage.memory import InMemoryStore
from sheetbase.storage.sql import SQLTableStore

__all__ = ["TabularStore", "InMemoryStore", "SQLTableStore"]
