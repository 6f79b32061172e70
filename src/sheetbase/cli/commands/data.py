"""Data CRUD commands."""

import json
from typing import Annotated, Any

import typer

from sheetbase.cli.context import CLIContext
from sheetbase.cli.output import OutputFormatter
from sheetbase.cli.parsing import parse_record_id, read_json_file, read_jsonl_file
from sheetbase.data.repository import Repository

# Create data subcommand group
app = typer.Typer(help="Manage table data (CRUD operations)")


def _record_key(repo: Repository, record_id: str) -> Any:
    return parse_record_id(record_id, repo.schema.get_field(repo.primary_key).type)


@app.command("insert")
def data_insert(
    ctx: typer.Context,
    table_name: Annotated[str, typer.Argument(help="Table name")],
    data_json: Annotated[
        str | None,
        typer.Argument(help="Record data as JSON string"),
    ] = None,
    from_file: Annotated[
        str | None,
        typer.Option("--from-file", "-f", help="Load data from JSON/JSONL file"),
    ] = None,
    batch: Annotated[
        bool,
        typer.Option("--batch", help="Batch insert from JSONL file (multiple records)"),
    ] = False,
) -> None:
    """Insert record(s) into a table.

    A batch insert keeps going past invalid records and reports them.

    Examples:

        # Inline JSON (single record)
        sheetbase data insert Customers '{"name": "Ada", "email": "ada@example.com"}'

        # From JSON file (single record)
        sheetbase data insert Customers --from-file customer.json

        # Batch insert from JSONL file (multiple records)
        sheetbase data insert Products --from-file products.jsonl --batch
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        if batch and not from_file:
            raise typer.BadParameter("--batch requires --from-file with a JSONL file")
        if not from_file and not data_json:
            raise typer.BadParameter("Either provide data as JSON string or use --from-file")

        db = cli_ctx.get_db()
        repo = db.repository(table_name)

        if from_file and batch:
            result = repo.batch_create(read_jsonl_file(from_file))
            details = {
                "inserted": result.success_count,
                "failed": result.failure_count,
                "ids": [r[repo.primary_key] for r in result.succeeded][:5],  # Show first 5
            }
            if result.failed:
                details["errors"] = [
                    {"index": item.index, "error": item.error} for item in result.failed[:10]
                ]
            formatter.print_success(
                f"Inserted {result.success_count}/{len(result.items)} records", details
            )
            failed = result.failure_count > 0
        else:
            data = read_json_file(from_file) if from_file else json.loads(data_json or "")
            record = repo.create(data)
            formatter.print_success("Inserted record", {"id": record[repo.primary_key]})
            failed = False

    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1) from e
    finally:
        cli_ctx.close()

    if failed:
        raise typer.Exit(code=1)


@app.command("get")
def data_get(
    ctx: typer.Context,
    table_name: Annotated[str, typer.Argument(help="Table name")],
    record_id: Annotated[str, typer.Argument(help="Primary key value")],
) -> None:
    """Get a record by primary key.

    Examples:

        sheetbase data get Customers 550e8400-e29b-41d4-a716-446655440000
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        db = cli_ctx.get_db()
        repo = db.repository(table_name)
        record = repo.find_by_id(_record_key(repo, record_id))
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1) from e
    finally:
        cli_ctx.close()

    if record is None:
        formatter.print_error(Exception(f"Record not found: {record_id}"))
        raise typer.Exit(code=1)
    formatter.print_data(record)


@app.command("update")
def data_update(
    ctx: typer.Context,
    table_name: Annotated[str, typer.Argument(help="Table name")],
    record_id: Annotated[str, typer.Argument(help="Primary key value")],
    data_json: Annotated[str, typer.Argument(help="Changed fields as JSON string")],
) -> None:
    """Update fields of a record.

    Examples:

        sheetbase data update Orders 550e8400 '{"notes": "Gift wrap"}'
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        db = cli_ctx.get_db()
        repo = db.repository(table_name)
        updated = repo.update(_record_key(repo, record_id), json.loads(data_json))
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1) from e
    finally:
        cli_ctx.close()

    if updated is None:
        formatter.print_error(Exception(f"Record not found: {record_id}"))
        raise typer.Exit(code=1)

    formatter.print_success("Record updated", {"id": record_id})
    if not cli_ctx.json_output:
        formatter.print_data(updated)


@app.command("delete")
def data_delete(
    ctx: typer.Context,
    table_name: Annotated[str, typer.Argument(help="Table name")],
    record_id: Annotated[str, typer.Argument(help="Primary key value")],
) -> None:
    """Delete a record.

    Records referencing it through a CASCADE foreign key are deleted too;
    a RESTRICT reference blocks the delete.

    Examples:

        sheetbase data delete Orders 550e8400
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        db = cli_ctx.get_db()
        repo = db.repository(table_name)
        deleted = repo.delete(_record_key(repo, record_id))
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1) from e
    finally:
        cli_ctx.close()

    if not deleted:
        formatter.print_error(Exception(f"Record not found: {record_id}"))
        raise typer.Exit(code=1)
    formatter.print_success(f"Record deleted: {record_id}")


@app.command("list")
def data_list(
    ctx: typer.Context,
    table_name: Annotated[str, typer.Argument(help="Table name")],
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", min=0, help="Maximum records to show"),
    ] = 50,
    sort_by: Annotated[
        str | None,
        typer.Option("--sort-by", help="Field to sort on"),
    ] = None,
    desc: Annotated[
        bool,
        typer.Option("--desc", help="Sort descending"),
    ] = False,
) -> None:
    """List records of a table.

    Examples:

        sheetbase data list Products --sort-by price --desc --limit 10
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        db = cli_ctx.get_db()
        repo = db.repository(table_name)
        records = repo.find_all(sort_by=sort_by, order="desc" if desc else "asc", limit=limit)
        columns = repo.schema.field_names
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1) from e
    finally:
        cli_ctx.close()

    formatter.print_table(f"{table_name} ({len(records)} shown)", records, columns)


@app.command("truncate")
def data_truncate(
    ctx: typer.Context,
    table_name: Annotated[str, typer.Argument(help="Table name")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt"),
    ] = False,
) -> None:
    """Remove every record of a table, keeping its header.

    No cascades or RESTRICT checks run, so referencing rows are left dangling.

    Examples:

        sheetbase data truncate OrderItems --yes
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    if not yes and not typer.confirm(f"Delete ALL records from {table_name}?"):
        typer.echo("Cancelled.")
        raise typer.Exit(code=0)

    try:
        db = cli_ctx.get_db()
        removed = db.repository(table_name).truncate()
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1) from e
    finally:
        cli_ctx.close()

    formatter.print_success(f"Truncated {table_name}", {"removed": removed})
