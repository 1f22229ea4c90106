import json
import typer
from typing import Any, List, Optional, Tuple
from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from tombstone.core.models import Tombstone

# Create a stderr console for system messages
error_console = Console(stderr=True)

class OutputFormatter:
    """
    Handles output formatting for the CLI.
    Ensures separation of concerns between System Messages (stderr) and Data (stdout).
    """

    @staticmethod
    def log(message: str, severity: str = "info") -> None:
        """
        Print system messages to stderr with color coding.
        """
        style = "white"
        prefix = "[TOMBSTONE]"

        if severity == "warning":
            style = "yellow"
        elif severity == "error":
            style = "red"
        elif severity == "success":
            style = "green"

        error_console.print(f"[{style}]{prefix} {escape(message)}[/{style}]")

    @staticmethod
    def print_graveyard(graveyard: str, rows: List[Tuple[str, Optional[Tombstone], Optional[str]]]) -> None:
        """
        Prints one table row per graveyard entry; unreadable entries show their error.
        """
        table = Table(title=f"Graveyard {escape(graveyard)}", header_style="bold")
        table.add_column("Name", style="bold")
        table.add_column("Born")
        table.add_column("Died")
        table.add_column("Exit Code")
        table.add_column("Status")

        for name, tombstone, error in rows:
            if tombstone is None:
                table.add_row(escape(name), "", "", "", f"[red]{escape(error or '')}[/red]")
                continue

            if tombstone.died is not None:
                color = "green" if tombstone.exit_code == 0 else "red"
                status = f"[{color}]dead[/{color}]"
            elif tombstone.born is not None:
                status = "[cyan]alive[/cyan]"
            else:
                status = "[yellow]unborn[/yellow]"

            table.add_row(
                escape(name),
                tombstone.born.isoformat() if tombstone.born else "",
                tombstone.died.isoformat() if tombstone.died else "",
                "" if tombstone.exit_code is None else str(tombstone.exit_code),
                status,
            )

        Console().print(table)

    @staticmethod
    def print_data(data: Any) -> None:
        """
        Print a result to stdout.
        Handles Pydantic models and plain values.
        """
        if isinstance(data, str):
            typer.echo(data)
            return

        def json_serializer(obj):
            if isinstance(obj, BaseModel):
                return obj.model_dump(mode='json', by_alias=True)
            if hasattr(obj, "isoformat"):
                return obj.isoformat()
            return str(obj)

        try:
            output = json.dumps(data, indent=2, default=json_serializer)
            typer.echo(output)
        except TypeError as e:
            OutputFormatter.log(f"JSON Serialization failed: {e}", severity="error")
            typer.echo(str(data))
