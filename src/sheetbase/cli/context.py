"""CLI context management for database connections and shared state."""

import logging
from dataclasses import dataclass, field

from rich.console import Console
from rich.logging import RichHandler

from sheetbase import Sheetbase
from sheetbase.config import DEFAULT_DATABASE_URL, Settings
from sheetbase.schema.loader import load_schema
from sheetbase.services.schema import COMMERCE_TABLES


def get_database_url(url: str | None) -> str:
    """Resolve database URL from CLI arg, environment variable, or default.

    Priority:
    1. Explicit URL argument (typer also fills it from SHEETBASE_URL)
    2. SHEETBASE_URL environment variable
    3. Default: sqlite:///./sheetbase.db
    """
    if url:
        return url
    return Settings.from_env(default_url=DEFAULT_DATABASE_URL).database_url


def configure_logging(level: str) -> None:
    """Send sheetbase log records to stderr through rich.

    Safe to call repeatedly; the previous CLI handler is replaced.
    """
    logger = logging.getLogger("sheetbase")
    for handler in list(logger.handlers):
        if getattr(handler, "_sheetbase_cli", False):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
        rich_tracebacks=False,
    )
    handler._sheetbase_cli = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(level)


@dataclass
class CLIContext:
    """Shared context for CLI commands.

    Manages database lifecycle and output preferences.
    """

    database_url: str
    schema_path: str | None
    json_output: bool
    echo: bool = False
    log_level: str = "WARNING"
    _db: Sheetbase | None = field(default=None, init=False, repr=False)

    def get_db(self) -> Sheetbase:
        """Get or create the database (lazy initialization).

        Tables are created on first use, so every command sees the full schema.
        Without a schema file the commerce example schema is used.
        """
        if self._db is None:
            settings = Settings(
                database_url=self.database_url,
                schema_path=self.schema_path,
                log_level=self.log_level,
                echo_sql=self.echo,
            )
            schema = load_schema(self.schema_path) if self.schema_path else COMMERCE_TABLES
            self._db = Sheetbase(settings.database_url, schema=schema, settings=settings)
            self._db.initialize()
        return self._db

    def close(self) -> None:
        """Close database connection if open."""
        if self._db is not None:
            self._db.close()
            self._db = None
