"""Per-repository field index cache.

Each index maps a field value to every record holding it and covers the
whole table. Indexes are dropped on every mutation of the owning
repository; the TTL only bounds how long a read-only process trusts an
index built from a store other processes may write to.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any

DEFAULT_INDEX_TTL_SECONDS = 300.0

FieldIndex = dict[Hashable, list[dict[str, Any]]]


def index_key(value: Any) -> Hashable:
    """Normalize a value into an index key.

    Numbers compare across int/float (``1 == 1.0``); unhashable values fall back to ``repr``.
    """
    if isinstance(value, float) and value.is_integer():
        return int(value)
    try:
        hash(value)
    except TypeError:
        return repr(value)
    return value


def build_index(records: list[dict[str, Any]], field: str) -> FieldIndex:
    index: FieldIndex = {}
    for record in records:
        index.setdefault(index_key(record.get(field)), []).append(record)
    return index


@dataclass
class _Entry:
    index: FieldIndex
    built_at: float


class IndexCache:
    """TTL-bounded, explicitly invalidated field indexes owned by one repository."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_INDEX_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            ttl_seconds: Age after which an index is rebuilt
            clock: Monotonic time source (injectable for tests)
        """
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, field: str) -> FieldIndex | None:
        """Return a fresh index for ``field`` or None if absent or expired."""
        entry = self._entries.get(field)
        if entry is None:
            return None
        if self._clock() - entry.built_at > self._ttl:
            del self._entries[field]
            return None
        return entry.index

    def put(self, field: str, index: FieldIndex) -> None:
        self._entries[field] = _Entry(index=index, built_at=self._clock())

    def invalidate(self) -> None:
        """Drop every cached index."""
        self._entries.clear()

    def cached_fields(self) -> list[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
