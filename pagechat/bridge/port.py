"""Duplex message ports connecting the UI side to the bridge.

A port carries JSON-compatible dicts in both directions and is used for a
single chat turn. Once either end disconnects, nothing more can be posted.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from starlette.websockets import WebSocketDisconnect

if TYPE_CHECKING:
    from fastapi import WebSocket

LOGGER = logging.getLogger(__name__)

DEFAULT_PORT_NAME = "callApiStream"


class PortClosedError(Exception):
    """Raised when posting to a disconnected port."""


class Port(ABC):
    """One end of a duplex channel."""

    name: str = DEFAULT_PORT_NAME

    @property
    @abstractmethod
    def connected(self) -> bool:
        """Whether both ends are still connected."""

    @abstractmethod
    async def receive(self) -> dict[str, Any] | None:
        """Return the next inbound message, or None once the channel is closed."""

    @abstractmethod
    async def post_message(self, message: dict[str, Any]) -> None:
        """Send a message to the other end."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the channel. Safe to call more than once."""

    @abstractmethod
    async def wait_closed(self) -> None:
        """Return once the other end has disconnected."""


_DISCONNECTED = object()


class MemoryPort(Port):
    """In-process port; create linked ends with :meth:`pair`."""

    def __init__(self, name: str = DEFAULT_PORT_NAME) -> None:
        self.name = name
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()
        self._peer: MemoryPort | None = None
        self._closed = asyncio.Event()
        self._inbox_drained = False

    @classmethod
    def pair(cls, name: str = DEFAULT_PORT_NAME) -> tuple[MemoryPort, MemoryPort]:
        """Return two connected ends (UI side, bridge side)."""
        ui_end, bridge_end = cls(name), cls(name)
        ui_end._peer, bridge_end._peer = bridge_end, ui_end
        return ui_end, bridge_end

    @property
    def connected(self) -> bool:
        return self._peer is not None and not self._closed.is_set()

    async def receive(self) -> dict[str, Any] | None:
        if self._inbox_drained:
            return None
        item = await self._inbox.get()
        if item is _DISCONNECTED:
            self._inbox_drained = True
            return None
        return item

    async def post_message(self, message: dict[str, Any]) -> None:
        if not self.connected or self._peer is None:
            msg = f"Port {self.name!r} is disconnected"
            raise PortClosedError(msg)
        # Messages are serialized like any cross-process channel would.
        await self._peer._inbox.put(json.loads(json.dumps(message)))

    async def disconnect(self) -> None:
        if self._closed.is_set():
            return
        LOGGER.debug("Port %s disconnected", self.name)
        for end in (self, self._peer):
            if end is not None:
                end._closed.set()
                await end._inbox.put(_DISCONNECTED)

    async def wait_closed(self) -> None:
        await self._closed.wait()


class WebSocketPort(Port):
    """Port carried over a server-side WebSocket (one JSON message per frame)."""

    def __init__(self, websocket: WebSocket, name: str = DEFAULT_PORT_NAME) -> None:
        self.name = name
        self._websocket = websocket
        self._closed = asyncio.Event()

    @property
    def connected(self) -> bool:
        return not self._closed.is_set()

    async def receive(self) -> dict[str, Any] | None:
        if self._closed.is_set():
            return None
        try:
            message = await self._websocket.receive_json()
        except WebSocketDisconnect:
            self._closed.set()
            return None
        if not isinstance(message, dict):
            LOGGER.warning("Non-object message on port %s: %r", self.name, message)
            return {}
        return message

    async def post_message(self, message: dict[str, Any]) -> None:
        if self._closed.is_set():
            msg = f"Port {self.name!r} is disconnected"
            raise PortClosedError(msg)
        try:
            await self._websocket.send_json(message)
        except (WebSocketDisconnect, RuntimeError) as exc:
            self._closed.set()
            msg = f"Port {self.name!r} is disconnected"
            raise PortClosedError(msg) from exc

    async def disconnect(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        try:
            await self._websocket.close()
        except RuntimeError:
            LOGGER.debug("WebSocket for port %s already closed", self.name)

    async def wait_closed(self) -> None:
        while not self._closed.is_set():
            try:
                message = await self._websocket.receive()
            except (WebSocketDisconnect, RuntimeError):
                break
            if message["type"] == "websocket.disconnect":
                break
        self._closed.set()
