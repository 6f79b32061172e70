"""Query command: filter, sort and page through a table."""

from typing import Annotated

import typer

from sheetbase.cli.context import CLIContext
from sheetbase.cli.output import OutputFormatter
from sheetbase.cli.parsing import parse_where


def query_command(
    ctx: typer.Context,
    table_name: Annotated[str, typer.Argument(help="Table name")],
    where: Annotated[
        list[str] | None,
        typer.Option(
            "--where",
            "-w",
            help="Filter as field<op>value, op in = != > >= < <= ~ (LIKE). Repeatable, ANDed.",
        ),
    ] = None,
    order_by: Annotated[
        str | None,
        typer.Option("--order-by", "-o", help="Field to sort on"),
    ] = None,
    desc: Annotated[
        bool,
        typer.Option("--desc", help="Sort descending"),
    ] = False,
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", help="Maximum records"),
    ] = None,
    offset: Annotated[
        int,
        typer.Option("--offset", help="Records to skip"),
    ] = 0,
    select: Annotated[
        str | None,
        typer.Option("--select", help="Comma-separated fields to return"),
    ] = None,
    page: Annotated[
        int | None,
        typer.Option("--page", help="Page number (1-based); enables pagination"),
    ] = None,
    page_size: Annotated[
        int,
        typer.Option("--page-size", help="Records per page"),
    ] = 20,
    count: Annotated[
        bool,
        typer.Option("--count", help="Only print the number of matching records"),
    ] = False,
) -> None:
    """Query a table with filters, sorting and pagination.

    Examples:

        sheetbase query Orders --where status=pending --where "total_amount>100"

        sheetbase query Customers -w "email~%@example.com" --order-by name --select name,email

        sheetbase query Products --order-by price --desc --page 2 --page-size 10
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        db = cli_ctx.get_db()
        builder = db.query(table_name)

        for expression in where or []:
            field, method, value = parse_where(expression)
            getattr(builder, method)(field, value)
        if order_by:
            builder.order_by(order_by, "desc" if desc else "asc")
        fields = [f.strip() for f in select.split(",") if f.strip()] if select else None
        if fields:
            builder.select(fields)

        if count:
            total = builder.count()
            result = None
        elif page is not None:
            result = builder.paginate(page=page, page_size=page_size).model_dump()
        else:
            if offset:
                builder.offset(offset)
            if limit is not None:
                builder.limit(limit)
            result = {"data": builder.get()}
        columns = fields or db.repository(table_name).schema.field_names
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1) from e
    finally:
        cli_ctx.close()

    if count:
        if cli_ctx.json_output:
            formatter.print_data({"table": table_name, "count": total})
        else:
            typer.echo(total)
        return

    if result is None:
        return
    if cli_ctx.json_output:
        formatter.print_data(result)
        return

    title = f"{table_name} ({len(result['data'])} records)"
    if "pagination" in result:
        p = result["pagination"]
        title = f"{table_name} (page {p['page']}/{p['total_pages']}, {p['total_count']} total)"
    formatter.print_table(title, result["data"], columns)
