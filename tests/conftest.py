"""Shared test fixtures for Sheetbase."""

import os
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest

from sheetbase import Sheetbase
from sheetbase.schema.registry import SchemaRegistry
from sheetbase.services.schema import COMMERCE_TABLES


def _psycopg_available() -> bool:
    """Check if psycopg is installed."""
    try:
        import psycopg  # noqa: F401

        return True
    except ImportError:
        return False


# Skip marker for tests requiring PostgreSQL
requires_postgresql = pytest.mark.skipif(
    not _psycopg_available(),
    reason="psycopg not installed (install with: pip install sheetbase[postgresql])",
)


class FakeClock:
    """Manually advanced monotonic clock for index TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> SchemaRegistry:
    """The commerce example schema."""
    return SchemaRegistry(COMMERCE_TABLES)


@pytest.fixture
def memory_db() -> Generator[Sheetbase, None, None]:
    """Commerce schema over the in-process store.

    This is the fastest backend; use it for tests that don't exercise SQL.
    """
    database = Sheetbase("memory://", schema=COMMERCE_TABLES)
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    """URL of a fresh SQLite database file."""
    return f"sqlite:///{tmp_path / 'sheetbase.db'}"


@pytest.fixture
def sqlite_db(sqlite_url: str) -> Generator[Sheetbase, None, None]:
    """Commerce schema over a SQLite file."""
    database = Sheetbase(sqlite_url, schema=COMMERCE_TABLES)
    database.initialize()
    yield database
    database.close()


@pytest.fixture(params=["memory", "sqlite"])
def any_db(request: pytest.FixtureRequest, sqlite_url: str) -> Generator[Sheetbase, None, None]:
    """Commerce schema over each backend in turn."""
    url = "memory://" if request.param == "memory" else sqlite_url
    database = Sheetbase(url, schema=COMMERCE_TABLES)
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def postgresql_url() -> str:
    """Get PostgreSQL URL from environment; skip when unavailable."""
    url = os.environ.get("TEST_DATABASE_URL")
    if not url or not _psycopg_available():
        pytest.skip("TEST_DATABASE_URL not set or psycopg not installed")
    return url


@pytest.fixture
def shop(memory_db: Sheetbase) -> dict[str, Any]:
    """Seed one customer and two products."""
    customer = memory_db.repository("Customers").create(
        {"name": "Alice Martin", "email": "alice@example.com", "credit_limit": 1000}
    )
    widget = memory_db.repository("Products").create(
        {"sku": "WID-001", "name": "Widget", "price": 25}
    )
    gadget = memory_db.repository("Products").create(
        {"sku": "GAD-001", "name": "Gadget", "price": 99.5}
    )
    return {"db": memory_db, "customer": customer, "widget": widget, "gadget": gadget}


# Re-export for use in test files
__all__ = ["FakeClock", "requires_postgresql"]
