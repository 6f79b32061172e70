"""Runtime settings.

Settings come from explicit arguments or environment variables:

- ``SHEETBASE_URL``: store URL (``memory://``, ``sqlite:///path.db``, ``postgresql://...``)
- ``SHEETBASE_SCHEMA``: path to a JSON schema file
- ``SHEETBASE_INDEX_TTL``: seconds an index cache entry stays fresh
- ``SHEETBASE_LOG_LEVEL``: logging level name used by the CLI
"""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, field_validator

from sheetbase.data.index_cache import DEFAULT_INDEX_TTL_SECONDS

DEFAULT_DATABASE_URL = "sqlite:///./sheetbase.db"
MEMORY_URL = "memory://"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseModel):
    """Configuration for a ``Sheetbase`` instance."""

    database_url: str = Field(default=MEMORY_URL, description="Tabular store URL")
    schema_path: str | None = Field(default=None, description="JSON schema file")
    index_ttl_seconds: float = Field(
        default=DEFAULT_INDEX_TTL_SECONDS, ge=0, description="Index cache TTL"
    )
    log_level: str = Field(default="WARNING", description="Logging level for the CLI")
    echo_sql: bool = Field(default=False, description="Echo SQL statements (SQL store only)")

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level '{value}'. Valid levels: {', '.join(LOG_LEVELS)}")
        return level

    @classmethod
    def from_env(cls, default_url: str = MEMORY_URL) -> Settings:
        """Load settings from environment variables."""
        return cls(
            database_url=os.getenv("SHEETBASE_URL", default_url),
            schema_path=os.getenv("SHEETBASE_SCHEMA") or None,
            index_ttl_seconds=float(
                os.getenv("SHEETBASE_INDEX_TTL", str(DEFAULT_INDEX_TTL_SECONDS))
            ),
            log_level=os.getenv("SHEETBASE_LOG_LEVEL", "WARNING"),
            echo_sql=os.getenv("SHEETBASE_ECHO_SQL", "false").lower() == "true",
        )
