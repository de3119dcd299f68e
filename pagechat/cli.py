"""Shared CLI functionality for the pagechat tools."""

from __future__ import annotations

import typer

from pagechat.config import load_config
from pagechat.core.utils import console

app = typer.Typer(
    name="pagechat",
    help="Chat with an AI assistant about the content of a web page.",
    add_completion=True,
    rich_markup_mode="markdown",
)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
) -> None:
    """Relay and port bridge for page chat."""
    if ctx.invoked_subcommand is None:
        console.print("[bold red]No command specified.[/bold red]")
        console.print("[bold yellow]Running --help for your convenience.[/bold yellow]")
        console.print(ctx.get_help())
        raise typer.Exit
    import dotenv  # noqa: PLC0415

    dotenv.load_dotenv()


def set_config_defaults(ctx: typer.Context, config_file: str | None) -> None:
    """Set the default values for the CLI based on the config file."""
    config = load_config(config_file)
    wildcard_config = config.get("defaults", {})
    # Runs inside the subcommand, so the command is the subcommand.
    subcommand = ctx.command.name

    if not subcommand:
        ctx.default_map = wildcard_config
        return

    command_config = config.get(subcommand, {})
    ctx.default_map = {**wildcard_config, **command_config}


# Import commands from other modules to register them
from pagechat.agents import ask, bridge, serve  # noqa: E402, F401
