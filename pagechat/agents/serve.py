"""Relay server command."""

from __future__ import annotations

import logging

import typer
from pydantic import ValidationError

from pagechat import opts
from pagechat.cli import app
from pagechat.config import RelaySettings
from pagechat.constants import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
from pagechat.core.utils import console, print_command_line_args, print_error_message

LOGGER = logging.getLogger(__name__)


def run_relay_server(settings: RelaySettings, host: str, port: int, log_level: str) -> None:
    """Build the relay app around a Bedrock client and run it with uvicorn."""
    import uvicorn  # noqa: PLC0415

    from pagechat.provider.bedrock import BedrockProvider  # noqa: PLC0415
    from pagechat.relay.api import create_app  # noqa: PLC0415
    from pagechat.server.common import setup_rich_logging  # noqa: PLC0415

    setup_rich_logging(log_level, console=console)
    provider = BedrockProvider(
        region=settings.region,
        model_id=settings.model_id,
        api_key=settings.api_key,
        endpoint_url=settings.endpoint_url,
    )
    LOGGER.info("Bedrock API key is %s", "set" if provider.api_key else "unset")
    relay_app = create_app(
        provider,
        token_limit=settings.token_limit,
        max_tokens=settings.max_tokens,
        temperature=settings.temperature,
        anthropic_version=settings.anthropic_version,
    )
    uvicorn.run(relay_app, host=host, port=port, log_config=None)


@app.command("serve")
def serve(
    host: str = opts.SERVER_HOST,
    port: int = opts.RELAY_PORT,
    aws_region: str = opts.AWS_REGION,
    model_id: str = opts.MODEL_ID,
    bedrock_api_key: str | None = opts.BEDROCK_API_KEY,
    endpoint_url: str | None = typer.Option(
        None,
        "--endpoint-url",
        help="Override the Bedrock runtime endpoint (e.g. for a local mock).",
        rich_help_panel="Provider Configuration",
    ),
    token_limit: int = opts.TOKEN_LIMIT,
    max_tokens: int = typer.Option(
        DEFAULT_MAX_TOKENS,
        "--max-tokens",
        min=1,
        help="Maximum tokens the model may generate per reply.",
        rich_help_panel="Provider Configuration",
    ),
    temperature: float = typer.Option(
        DEFAULT_TEMPERATURE,
        "--temperature",
        min=0.0,
        max=1.0,
        help="Sampling temperature.",
        rich_help_panel="Provider Configuration",
    ),
    log_level: str = opts.LOG_LEVEL,
    config_file: str | None = opts.CONFIG_FILE,
    print_args: bool = opts.PRINT_ARGS,
) -> None:
    """Start the chat relay server.

    Accepts `POST /api/chat` with `{"messages": [...], "context": {...}}`,
    truncates the history to the token budget and streams the model's reply
    back as Server-Sent Events (`data: {"content": "..."}`).

    Example usage:
        pagechat serve --port 3000 --aws-region us-west-2
    """
    if print_args:
        print_command_line_args({**locals(), "bedrock_api_key": "set" if bedrock_api_key else "unset"})

    try:
        settings = RelaySettings(
            region=aws_region,
            model_id=model_id,
            api_key=bedrock_api_key,
            endpoint_url=endpoint_url,
            token_limit=token_limit,
            max_tokens=max_tokens,
            temperature=temperature,
        )
    except ValidationError as exc:
        print_error_message(str(exc))
        raise typer.Exit(1) from exc

    if not settings.api_key:
        print_error_message(
            "No Bedrock API key configured; every chat request will fail.",
            "Set AWS_BEARER_TOKEN_BEDROCK (a .env file works) or pass --bedrock-api-key.",
        )

    console.print(f"[bold green]Starting pagechat relay on {host}:{port}[/bold green]")
    run_relay_server(settings, host, port, log_level)
