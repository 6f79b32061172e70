"""Sheetbase CLI - Main entry point."""

from typing import Annotated

import typer

import sheetbase
from sheetbase.cli.context import CLIContext, configure_logging, get_database_url
from sheetbase.cli.output import OutputFormatter
from sheetbase.config import LOG_LEVELS

# Create main Typer app
app = typer.Typer(
    name="sheetbase",
    help="Sheetbase CLI - a relational layer over tabular row stores",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    database: Annotated[
        str | None,
        typer.Option(
            "--database",
            "-d",
            envvar="SHEETBASE_URL",
            help="Store URL (memory://, sqlite:///path.db or postgresql://...)",
        ),
    ] = None,
    schema: Annotated[
        str | None,
        typer.Option(
            "--schema",
            "-s",
            envvar="SHEETBASE_SCHEMA",
            help="JSON schema file (default: built-in commerce schema)",
        ),
    ] = None,
    echo: Annotated[
        bool,
        typer.Option(
            "--echo",
            "-e",
            help="Echo SQL statements to console",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            "-j",
            help="Output as JSON (machine-readable)",
        ),
    ] = False,
    log_level: Annotated[
        str,
        typer.Option(
            "--log-level",
            envvar="SHEETBASE_LOG_LEVEL",
            help=f"Logging level ({', '.join(LOG_LEVELS)})",
        ),
    ] = "WARNING",
) -> None:
    """Initialize CLI context with global options."""
    level = log_level.upper()
    if level not in LOG_LEVELS:
        raise typer.BadParameter(
            f"Invalid log level '{log_level}'. Valid levels: {', '.join(LOG_LEVELS)}",
            param_hint="--log-level",
        )
    configure_logging(level)

    ctx.obj = CLIContext(
        database_url=get_database_url(database),
        schema_path=schema,
        json_output=json_output,
        echo=echo,
        log_level=level,
    )


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"Sheetbase v{sheetbase.__version__}")


@app.command()
def init(ctx: typer.Context) -> None:
    """Create every table of the schema (header row in schema order).

    Idempotent: existing tables keep their rows, new columns are appended.

    Examples:

        sheetbase -d sqlite:///./shop.db init
        sheetbase -d sqlite:///./crm.db --schema crm.json init
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        db = cli_ctx.get_db()
        tables = db.list_tables()
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1) from e
    finally:
        cli_ctx.close()

    formatter.print_success(
        f"Initialized {len(tables)} table(s)",
        {"tables": tables, "database": cli_ctx.database_url},
    )


# Register command groups
from sheetbase.cli.commands import data, query, schema  # noqa: E402

app.add_typer(schema.app, name="schema")
app.add_typer(data.app, name="data")

# Register query as a standalone command (not a group)
app.command(name="query")(query.query_command)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
