"""Console helpers shared by the CLI commands."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

console = Console()
err_console = Console(stderr=True)


def print_error_message(message: str, suggestion: str | None = None) -> None:
    """Print an error message in a red panel."""
    error_text = Text(message)
    if suggestion:
        error_text.append("\n\n")
        error_text.append(suggestion)
    err_console.print(Panel(error_text, title="Error", border_style="bold red"))


def print_command_line_args(args: dict[str, Any]) -> None:
    """Print the command line arguments of a command."""
    lines = [f"[bold]{k}[/bold]: {v}" for k, v in sorted(args.items())]
    console.print(Panel("\n".join(lines), title="Command Line Arguments", border_style="dim"))


def print_output_panel(
    output: str,
    title: str = "Output",
    subtitle: str | None = None,
    style: str = "green",
) -> None:
    """Print the final output in a panel."""
    console.print(Panel(output, title=title, subtitle=subtitle, border_style=style))
