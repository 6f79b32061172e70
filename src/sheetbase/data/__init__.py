"""Data access: repositories and their index cache."""

from sheetbase.data.index_cache import IndexCache
from sheetbase.data.repository import Repository, sort_records

__all__ = ["IndexCache", "Repository", "sort_records"]
