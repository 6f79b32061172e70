"""Output formatting for CLI commands."""

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.pretty import pprint
from rich.table import Table

from sheetbase.exceptions import SheetbaseError, ValidationError

console = Console()


class OutputFormatter:
    """Formats output for terminal or JSON mode."""

    def __init__(self, json_mode: bool = False) -> None:
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
        """
        self.json_mode = json_mode

    def print_table(
        self,
        title: str,
        data: list[dict[str, Any]],
        columns: list[str],
    ) -> None:
        """Print data as Rich table or JSON array.

        Args:
            title: Table title
            data: List of row dictionaries
            columns: Column names to display
        """
        if self.json_mode:
            print(json.dumps(data, default=str, indent=2))
        else:
            table = Table(title=title, show_header=True, header_style="bold magenta")
            for col in columns:
                table.add_column(col)
            for row in data:
                table.add_row(*["" if row.get(col) is None else str(row.get(col)) for col in columns])
            console.print(table)

    def print_table_info(self, info: dict[str, Any]) -> None:
        """Print a table definition with its fields and relationships.

        Args:
            info: Output of ``Sheetbase.describe_table``
        """
        if self.json_mode:
            print(json.dumps(info, default=str, indent=2))
            return

        console.print(f"\n[bold]Table:[/bold] {info['name']}")
        if info.get("storage_name") and info["storage_name"] != info["name"]:
            console.print(f"Storage: {info['storage_name']}")
        console.print(f"Primary key: {info['primary_key']}")
        if info.get("record_count") is not None:
            console.print(f"Records: {info['record_count']:,}")
        if info.get("description"):
            console.print(f"Description: {info['description']}")

        fields = info.get("fields", [])
        console.print(f"\n[bold]Fields ({len(fields)}):[/bold]")
        fields_table = Table(show_header=True, header_style="bold cyan")
        for column in ("Name", "Type", "Required", "Unique", "Default", "Constraints"):
            fields_table.add_column(column)

        for spec in fields:
            constraints = []
            if spec.get("auto_generate"):
                constraints.append("auto")
            if spec.get("auto_update"):
                constraints.append("auto-update")
            if spec.get("computed"):
                constraints.append("computed")
            if spec.get("values"):
                constraints.append("one of " + "|".join(spec["values"]))
            if spec.get("min") is not None or spec.get("max") is not None:
                constraints.append(f"range [{spec.get('min', '')}, {spec.get('max', '')}]")
            if spec.get("foreign_key"):
                fk = spec["foreign_key"]
                constraints.append(f"→ {fk['table']}.{fk['field']} ({fk['on_delete']})")
            fields_table.add_row(
                spec["name"],
                spec["type"],
                "✓" if spec.get("required") else "",
                "✓" if spec.get("unique") else "",
                "" if spec.get("default") is None else str(spec["default"]),
                ", ".join(constraints),
            )
        console.print(fields_table)

        incoming = info.get("incoming_foreign_keys", [])
        if incoming:
            console.print(f"\n[bold]Referenced by ({len(incoming)}):[/bold]")
            rel_table = Table(show_header=True, header_style="bold cyan")
            rel_table.add_column("Table")
            rel_table.add_column("Field")
            rel_table.add_column("On delete")
            for rel in incoming:
                rel_table.add_row(rel["table"], rel["field"], rel["on_delete"] or "")
            console.print(rel_table)

    def print_success(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Print success message.

        Args:
            message: Success message
            details: Optional details to display
        """
        if self.json_mode:
            output = {"success": True, "message": message}
            if details:
                output.update(details)
            print(json.dumps(output, default=str, indent=2))
        else:
            console.print(f"✓ {message}", style="green")
            if details:
                for key, value in details.items():
                    console.print(f"  {key}: {value}", style="dim")

    def print_error(self, error: Exception) -> None:
        """Print error message.

        Args:
            error: Exception to display
        """
        if self.json_mode:
            if isinstance(error, SheetbaseError):
                print(json.dumps(error.to_dict(), default=str, indent=2))
            else:
                print(json.dumps({"error": str(error)}, indent=2))
        else:
            error_text = str(error)
            # Validation messages already list every violation
            if (
                isinstance(error, SheetbaseError)
                and error.context
                and not isinstance(error, ValidationError)
            ):
                context_str = "\n".join(f"{k}: {v}" for k, v in error.context.items())
                error_text = f"{error_text}\n\n{context_str}"

            panel = Panel(
                error_text,
                title="[red]Error[/red]",
                border_style="red",
            )
            console.print(panel)

    def print_data(self, data: Any) -> None:
        """Print generic data (dict, list, etc.).

        Args:
            data: Data to print
        """
        if self.json_mode:
            print(json.dumps(data, default=str, indent=2))
        else:
            pprint(data, console=console, expand_all=True)
