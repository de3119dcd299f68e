"""Ask a question about a saved page through the relay."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path  # noqa: TC003
from typing import TYPE_CHECKING

import typer
from rich.live import Live
from rich.markdown import Markdown

from pagechat import opts
from pagechat.bridge.bridge import PortBridge
from pagechat.bridge.port import MemoryPort
from pagechat.bridge.render import StreamOutcome, StreamRenderer, consume_port
from pagechat.cli import app
from pagechat.core.utils import (
    console,
    err_console,
    print_command_line_args,
    print_error_message,
    print_output_panel,
)
from pagechat.models import ChatMessage, ChatRequest, PageContext
from pagechat.server.common import setup_rich_logging

if TYPE_CHECKING:
    from collections.abc import Callable

    import httpx

LOGGER = logging.getLogger(__name__)


async def ask_page(
    request: ChatRequest,
    relay_url: str,
    *,
    client: httpx.AsyncClient | None = None,
    on_update: Callable[[StreamRenderer], None] | None = None,
) -> StreamRenderer:
    """Run one chat turn through an in-memory port pair and the bridge."""
    ui_end, bridge_end = MemoryPort.pair()
    bridge = PortBridge(relay_url, client=client)
    serving = asyncio.create_task(bridge.serve(bridge_end))
    try:
        await ui_end.post_message(request.to_wire())
        renderer = await consume_port(ui_end, on_update=on_update)
        await serving
    finally:
        if not serving.done():
            serving.cancel()
        await bridge.aclose()
    return renderer


@app.command("ask")
def ask(
    page_file: Path = typer.Argument(  # noqa: B008
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="Text file holding the extracted page content.",
    ),
    question: str = typer.Argument(..., help="Question to ask about the page."),
    title: str | None = typer.Option(None, "--title", help="Page title (defaults to the file name)."),
    url: str | None = typer.Option(None, "--url", help="Page URL."),
    system_prompt: str | None = typer.Option(
        None,
        "--system-prompt",
        help="System prompt sent ahead of the page content.",
    ),
    relay_url: str = opts.RELAY_URL,
    quiet: bool = typer.Option(
        False,  # noqa: FBT003
        "--quiet",
        "-q",
        help="Print only the answer, without live rendering.",
    ),
    log_level: str = opts.LOG_LEVEL,
    config_file: str | None = opts.CONFIG_FILE,
    print_args: bool = opts.PRINT_ARGS,
) -> None:
    """Ask one question about a page and stream the answer."""
    if print_args:
        print_command_line_args(locals())
    setup_rich_logging(log_level, console=err_console)
    LOGGER.debug("Asking %s about %s", relay_url, page_file)

    request = ChatRequest(
        messages=[ChatMessage(role="user", content=question)],
        context=PageContext(
            system_prompt=system_prompt,
            page_content=page_file.read_text(encoding="utf-8"),
            title=title or page_file.name,
            url=url,
        ),
    )

    if quiet:
        renderer = asyncio.run(ask_page(request, relay_url))
    else:
        with Live(Markdown(""), console=console, refresh_per_second=10) as live:
            renderer = asyncio.run(
                ask_page(
                    request,
                    relay_url,
                    on_update=lambda r: live.update(Markdown(r.display_text())),
                ),
            )

    if renderer.outcome is StreamOutcome.FAILED_BEFORE_START:
        print_error_message(renderer.error or "Unknown error", f"Is the relay running at {relay_url}?")
        raise typer.Exit(1)

    if quiet:
        print(renderer.display_text())
    else:
        print_output_panel(renderer.display_text(), title="Answer")
    if renderer.outcome is not StreamOutcome.COMPLETED:
        raise typer.Exit(1)
