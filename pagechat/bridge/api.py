"""FastAPI app exposing the port protocol over a WebSocket."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, WebSocket

from pagechat.bridge.bridge import PortBridge
from pagechat.bridge.port import WebSocketPort
from pagechat.constants import DEFAULT_RELAY_URL, PORT_ROUTE
from pagechat.server.common import RequestLoggingMiddleware

if TYPE_CHECKING:
    import httpx

LOGGER = logging.getLogger(__name__)


def create_bridge_app(
    relay_url: str = DEFAULT_RELAY_URL,
    client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Create the bridge app; every WebSocket connection is one chat turn."""
    bridge = PortBridge(relay_url, client=client)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):  # noqa: ANN202
        LOGGER.info("Bridge forwarding to %s", relay_url)
        yield
        await bridge.aclose()

    app = FastAPI(title="Page Chat Bridge", lifespan=lifespan)
    app.add_middleware(RequestLoggingMiddleware)
    app.state.bridge = bridge

    @app.websocket(PORT_ROUTE)
    async def port_endpoint(websocket: WebSocket) -> None:
        await websocket.accept()
        LOGGER.debug("Port connection opened")
        await bridge.serve(WebSocketPort(websocket))

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"status": "ok", "relay_url": relay_url}

    return app
