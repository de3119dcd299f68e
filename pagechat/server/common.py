"""Logging setup and request logging shared by the relay and bridge apps."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

NOISY_LOGGERS = ("httpx", "httpcore")
UVICORN_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error")


def _install_handler(target: logging.Logger, handler: logging.Handler, level: int) -> None:
    target.handlers.clear()
    target.addHandler(handler)
    target.setLevel(level)


def setup_rich_logging(log_level: str = "info", *, console: Console | None = None) -> None:
    """Route the root and uvicorn loggers through one RichHandler.

    Args:
        log_level: Logging level name (debug, info, warning, error).
        console: Rich console to log to; a fresh one when omitted.

    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    handler = RichHandler(
        console=console or Console(),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    _install_handler(logging.getLogger(), handler, level)
    for name in UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        _install_handler(uvicorn_logger, handler, level)
        uvicorn_logger.propagate = False

    # Request URLs can carry credentials at debug level
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


class RequestLoggingMiddleware:
    """Log each HTTP request and any error status it ends with.

    Plain ASGI: the response body passes through untouched, so an exception
    raised while streaming still reaches the server and aborts the body.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method, path = scope["method"], scope["path"]
        client = scope.get("client")
        logger.info("%s %s from %s", method, path, client[0] if client else "unknown")

        async def send_logging_status(message: Message) -> None:
            if message["type"] == "http.response.start" and message["status"] >= 400:  # noqa: PLR2004
                logger.warning("Request failed: %s %s -> %d", method, path, message["status"])
            await send(message)

        await self.app(scope, receive, send_logging_status)
