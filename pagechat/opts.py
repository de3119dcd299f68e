"""Shared Typer options for the pagechat commands."""

from __future__ import annotations

import typer

from pagechat import constants
from pagechat.provider.bedrock import API_KEY_ENV


def _config_callback(ctx: typer.Context, value: str | None) -> str | None:
    from pagechat.cli import set_config_defaults  # noqa: PLC0415

    set_config_defaults(ctx, value)
    return value


# --- General Options ---
CONFIG_FILE = typer.Option(
    None,
    "--config",
    help="Path to a custom config file.",
    is_eager=True,
    callback=_config_callback,
    rich_help_panel="General Options",
)
PRINT_ARGS = typer.Option(
    False,  # noqa: FBT003
    "--print-args",
    help="Print the command line arguments, including variables taken from the configuration file.",
    is_flag=True,
    rich_help_panel="General Options",
)
LOG_LEVEL = typer.Option(
    "INFO",
    "--log-level",
    help="Set the log level (e.g., DEBUG, INFO, WARNING).",
    rich_help_panel="General Options",
)

# --- Server Options ---
SERVER_HOST = typer.Option(
    constants.DEFAULT_RELAY_HOST,
    "--host",
    help="Host to bind the server to.",
    rich_help_panel="Server Configuration",
)
RELAY_PORT = typer.Option(
    constants.DEFAULT_RELAY_PORT,
    "--port",
    help="Port for the relay server.",
    rich_help_panel="Server Configuration",
)
BRIDGE_PORT = typer.Option(
    constants.DEFAULT_BRIDGE_PORT,
    "--port",
    help="Port for the bridge server.",
    rich_help_panel="Server Configuration",
)
RELAY_URL = typer.Option(
    constants.DEFAULT_RELAY_URL,
    "--relay-url",
    envvar="PAGECHAT_RELAY_URL",
    help="URL of the relay chat endpoint.",
    rich_help_panel="Server Configuration",
)

# --- Provider Options ---
AWS_REGION = typer.Option(
    constants.DEFAULT_AWS_REGION,
    "--aws-region",
    envvar="AWS_REGION",
    help="AWS region hosting the Bedrock model.",
    rich_help_panel="Provider Configuration",
)
BEDROCK_API_KEY = typer.Option(
    None,
    "--bedrock-api-key",
    envvar=API_KEY_ENV,
    help="Bedrock API key (bearer token).",
    show_default=False,
    rich_help_panel="Provider Configuration",
)
MODEL_ID = typer.Option(
    constants.DEFAULT_MODEL_ID,
    "--model-id",
    help="Bedrock model identifier.",
    rich_help_panel="Provider Configuration",
)
TOKEN_LIMIT = typer.Option(
    constants.CONTEXT_LIMIT_TOKENS,
    "--token-limit",
    min=1,
    help="Estimated-token budget for the message history.",
    rich_help_panel="Provider Configuration",
)
