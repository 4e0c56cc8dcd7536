"""Console output helpers for the CLI."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .models import ComparisonResult


class OutputFormatter:
    """Formats messages and results for the terminal or as JSON."""

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        """Initialize the output formatter.

        Args:
            json_output: Print machine readable JSON instead of text
            quiet: Suppress non-essential output
            console: Console for regular output
            err_console: Console for warnings and errors
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)

    def print(self, message: str = "") -> None:
        """Print a plain message."""
        if not self.json_output:
            self.console.print(escape(message))

    def info(self, message: str) -> None:
        """Print an informational message (suppressed in quiet mode)."""
        if not self.quiet and not self.json_output:
            self.console.print(escape(message))

    def success(self, message: str) -> None:
        """Print a success message."""
        if not self.json_output:
            self.console.print(f"[green]{escape(message)}[/green]")

    def warning(self, message: str) -> None:
        """Print a warning to stderr."""
        self.err_console.print(f"[yellow]Warning:[/yellow] {escape(message)}")

    def error(self, message: str) -> None:
        """Print an error to stderr."""
        self.err_console.print(f"[red]Error:[/red] {escape(message)}")

    def output_json(self, data: Any) -> None:
        """Print data as JSON."""
        self.console.print_json(json.dumps(data))

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a two column summary table."""
        if self.json_output:
            return
        table = Table(title=title, show_header=False, title_justify="left")
        table.add_column("Key", style="bold")
        table.add_column("Value")
        for key, value in items:
            table.add_row(escape(key), escape(value))
        self.console.print(table)

    def print_path_list(self, title: str, paths: list[str]) -> None:
        """Print a titled list of paths, as ``title: count`` then one per line."""
        if self.json_output:
            return
        self.console.print(f"[bold]{escape(title)}:[/bold] {len(paths)}")
        for path in paths:
            self.console.print(escape(path))
        if paths:
            self.console.print()

    def print_comparison(self, result: ComparisonResult) -> None:
        """Print a full comparison result."""
        if self.json_output:
            self.output_json(result.to_dict())
            return

        if result.is_successful():
            self.success("SUCCESS: verified local sync.")
        else:
            self.console.print(
                f"[red]FAILURE: {result.misses} sync mismatches detected.[/red]"
            )
        self.print()

        self.print_path_list(
            "Files only in remote", [f.display_path for f in result.only_remote]
        )
        self.print_path_list(
            "Files only in local", [f.display_path for f in result.only_local]
        )
        self.print_path_list("Files whose contents don't match", result.content_mismatch)
        self.print_path_list(
            "Possible matches",
            [f'"{m.remote_path}" -> "{m.local_path}"' for m in result.possible_matches],
        )
        self.print_path_list("Known sync issues", result.known_sync_issues)
        self.print_path_list("Errored", [str(e) for e in result.errored])
        if result.duplicate_paths:
            self.print_path_list("Duplicate paths", result.duplicate_paths)

        self.print_summary(
            "SUMMARY",
            [
                ("Files matched", f"{result.matches}/{result.total}"),
                ("Files not matched", f"{result.misses}/{result.total}"),
            ],
        )
