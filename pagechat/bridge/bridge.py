"""Forward one chat turn from a port to the relay and stream the answer back.

Outbound port messages are ``{"chunk": str}`` any number of times, then
exactly one of ``{"done": True}`` or ``{"error": str}``, after which the port
is disconnected.
"""

from __future__ import annotations

import asyncio
import codecs
import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from pagechat.bridge.port import PortClosedError
from pagechat.constants import (
    DEFAULT_RELAY_URL,
    INVALID_PORT_REQUEST_ERROR,
    PROVIDER_REQUEST_TIMEOUT,
)

if TYPE_CHECKING:
    from pagechat.bridge.port import Port

LOGGER = logging.getLogger(__name__)


async def _error_from_response(response: httpx.Response) -> str:
    body = await response.aread()
    try:
        parsed = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return f"Backend responded with status {response.status_code}: {response.reason_phrase}"
    if isinstance(parsed, dict) and parsed.get("error"):
        return str(parsed["error"])
    return json.dumps(parsed)


class PortBridge:
    """Serve chat turns arriving on ports by calling the relay endpoint."""

    def __init__(
        self,
        relay_url: str = DEFAULT_RELAY_URL,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = PROVIDER_REQUEST_TIMEOUT,
    ) -> None:
        self.relay_url = relay_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        """Close the HTTP client if this bridge created it."""
        if self._owns_client:
            await self._client.aclose()

    async def serve(self, port: Port) -> dict[str, Any] | None:
        """Handle a single turn on ``port``.

        Returns the terminal message that was sent, or None when the UI side
        went away first.
        """
        request = await port.receive()
        if request is None:
            LOGGER.info("Port %s disconnected before sending a request", port.name)
            return None
        LOGGER.debug("Received message on port %s", port.name)

        if not isinstance(request.get("messages"), list):
            LOGGER.error("Invalid message received (missing or invalid messages array)")
            return await self._finish(port, {"error": INVALID_PORT_REQUEST_ERROR})

        forward = asyncio.create_task(self._forward(port, request))
        closed = asyncio.create_task(port.wait_closed())
        try:
            await asyncio.wait({forward, closed}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            closed.cancel()
            if not forward.done():
                LOGGER.info("Port %s disconnected mid-stream, aborting relay request", port.name)
                forward.cancel()
            await asyncio.gather(forward, closed, return_exceptions=True)

        if forward.cancelled():
            return None
        terminal = forward.result()
        if terminal is None:
            return None
        return await self._finish(port, terminal)

    async def _finish(self, port: Port, terminal: dict[str, Any]) -> dict[str, Any] | None:
        try:
            await port.post_message(terminal)
        except PortClosedError:
            LOGGER.info("Port %s closed before the terminal signal could be sent", port.name)
            return None
        finally:
            await port.disconnect()
        return terminal

    async def _forward(self, port: Port, request: dict[str, Any]) -> dict[str, Any] | None:
        """Stream the relay response into ``port``; return the terminal message."""
        LOGGER.info("Fetching %s", self.relay_url)
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            async with self._client.stream("POST", self.relay_url, json=request) as response:
                if not response.is_success:
                    error = await _error_from_response(response)
                    LOGGER.warning("Relay error %s: %s", response.status_code, error)
                    return {"error": error}
                async for data in response.aiter_bytes():
                    text = decoder.decode(data)
                    if text:
                        await port.post_message({"chunk": text})
                tail = decoder.decode(b"", final=True)
                if tail:
                    await port.post_message({"chunk": tail})
        except PortClosedError:
            LOGGER.info("Port %s went away while streaming", port.name)
            return None
        except httpx.HTTPError as exc:
            LOGGER.warning("Relay stream failed: %s", exc)
            return {"error": str(exc) or type(exc).__name__}
        except Exception as exc:
            LOGGER.exception("Unexpected error during fetch")
            return {"error": str(exc) or "Unknown error"}
        return {"done": True}
