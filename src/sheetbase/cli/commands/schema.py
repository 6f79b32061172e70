"""Schema inspection commands."""

from typing import Annotated

import typer

from sheetbase.cli.context import CLIContext
from sheetbase.cli.output import OutputFormatter

# Create schema subcommand group
app = typer.Typer(help="Inspect table schemas")


@app.command("list")
def schema_list(ctx: typer.Context) -> None:
    """List all tables with field and record counts."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        db = cli_ctx.get_db()
        info = db.describe()
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1) from e
    finally:
        cli_ctx.close()

    if cli_ctx.json_output:
        formatter.print_data(info)
        return

    table_data = [
        {
            "Name": name,
            "Fields": len(table["fields"]),
            "Records": table.get("record_count") or 0,
            "Primary key": table["primary_key"],
        }
        for name, table in info["tables"].items()
    ]
    formatter.print_table(
        f"Tables ({info['total_tables']} total)",
        table_data,
        ["Name", "Fields", "Records", "Primary key"],
    )


@app.command("describe")
def schema_describe(
    ctx: typer.Context,
    table_name: Annotated[str, typer.Argument(help="Table name")],
) -> None:
    """Show fields, constraints and incoming foreign keys of a table."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        db = cli_ctx.get_db()
        info = db.describe_table(table_name)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1) from e
    finally:
        cli_ctx.close()

    formatter.print_table_info(info)
