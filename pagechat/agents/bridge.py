"""Port bridge server command."""

from __future__ import annotations

import typer
from pydantic import ValidationError

from pagechat import opts
from pagechat.cli import app
from pagechat.config import BridgeSettings
from pagechat.constants import PORT_ROUTE
from pagechat.core.utils import console, print_command_line_args, print_error_message


@app.command("bridge")
def bridge(
    relay_url: str = opts.RELAY_URL,
    host: str = opts.SERVER_HOST,
    port: int = opts.BRIDGE_PORT,
    log_level: str = opts.LOG_LEVEL,
    config_file: str | None = opts.CONFIG_FILE,
    print_args: bool = opts.PRINT_ARGS,
) -> None:
    """Start the WebSocket port bridge.

    Each WebSocket connection to `/port` carries one chat turn: the client
    sends `{"messages": [...], "context": {...}}` and receives `{"chunk": ...}`
    messages followed by exactly one `{"done": true}` or `{"error": ...}`.
    """
    if print_args:
        print_command_line_args(locals())

    try:
        settings = BridgeSettings(relay_url=relay_url)
    except ValidationError as exc:
        print_error_message(str(exc))
        raise typer.Exit(1) from exc

    import uvicorn  # noqa: PLC0415

    from pagechat.bridge.api import create_bridge_app  # noqa: PLC0415
    from pagechat.server.common import setup_rich_logging  # noqa: PLC0415

    setup_rich_logging(log_level, console=console)
    console.print(
        f"[bold green]Starting pagechat bridge on ws://{host}:{port}{PORT_ROUTE} "
        f"-> {settings.relay_url}[/bold green]",
    )
    uvicorn.run(create_bridge_app(settings.relay_url), host=host, port=port, log_config=None)
