"""UI-side consumption of the port protocol.

``chunk`` messages carry raw SSE text that may split records anywhere, so
records are buffered until their ``\\n\\n`` terminator arrives.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from pagechat.core.sse import SSE_DELIMITER, RecordAccumulator, extract_content_from_chunk, parse_chunk

if TYPE_CHECKING:
    from collections.abc import Callable

    from pagechat.bridge.port import Port

LOGGER = logging.getLogger(__name__)

DISCONNECTED_ERROR = "Stream disconnected unexpectedly."


class StreamOutcome(str, Enum):
    """How a chat turn ended, as far as the UI can tell."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED_BEFORE_START = "failed_before_start"
    FAILED_MID_STREAM = "failed_mid_stream"
    DISCONNECTED = "disconnected"


@dataclass
class StreamRenderer:
    """Accumulate the assistant reply for one chat turn."""

    parts: list[str] = field(default_factory=list)
    error: str | None = None
    finished: bool = False
    disconnected: bool = False
    _records: RecordAccumulator = field(default_factory=lambda: RecordAccumulator(SSE_DELIMITER))

    @property
    def content(self) -> str:
        return "".join(self.parts)

    @property
    def outcome(self) -> StreamOutcome:
        if not self.finished:
            return StreamOutcome.PENDING
        if self.error is None and not self.disconnected:
            return StreamOutcome.COMPLETED
        if self.disconnected and self.error is None:
            return StreamOutcome.DISCONNECTED
        return StreamOutcome.FAILED_MID_STREAM if self.parts else StreamOutcome.FAILED_BEFORE_START

    def handle(self, message: dict[str, Any]) -> str:
        """Apply one port message; return the text it added."""
        if self.finished:
            LOGGER.warning("Ignoring port message after the terminal signal: %r", message)
            return ""
        if message.get("chunk"):
            return self._feed(message["chunk"])
        if message.get("done"):
            self.finished = True
            if self._records.pending.strip():
                LOGGER.warning("Stream ended inside an SSE record: %r", self._records.pending)
        elif message.get("error"):
            self.error = str(message["error"])
            self.finished = True
        return ""

    def handle_disconnect(self) -> None:
        """Record that the channel closed; only meaningful before a terminal signal."""
        if not self.finished:
            self.disconnected = True
            self.finished = True

    def _feed(self, text: str) -> str:
        added: list[str] = []
        for record in self._records.feed(text):
            if not record.strip():
                continue
            chunk = parse_chunk(record)
            if chunk is None:
                if record.strip() != "data: [DONE]":
                    LOGGER.error("Failed to parse SSE record: %r", record)
                continue
            piece = extract_content_from_chunk(chunk)
            if piece:
                added.append(piece)
        self.parts.extend(added)
        return "".join(added)

    def display_text(self) -> str:
        """Text to show for the reply, with an inline marker when it failed."""
        if self.outcome is StreamOutcome.FAILED_BEFORE_START:
            return f"Error: {self.error}"
        if self.outcome is StreamOutcome.FAILED_MID_STREAM:
            return f"{self.content}\n\n[Error: {self.error}]"
        if self.outcome is StreamOutcome.DISCONNECTED:
            if not self.parts:
                return f"Error: {DISCONNECTED_ERROR}"
            return f"{self.content}\n\n[Error: {DISCONNECTED_ERROR}]"
        return self.content


async def consume_port(
    port: Port,
    renderer: StreamRenderer | None = None,
    on_update: Callable[[StreamRenderer], None] | None = None,
) -> StreamRenderer:
    """Read ``port`` until a terminal signal or disconnect, then disconnect it."""
    renderer = renderer or StreamRenderer()
    while not renderer.finished:
        message = await port.receive()
        if message is None:
            LOGGER.debug("Background port disconnected")
            renderer.handle_disconnect()
            break
        renderer.handle(message)
        if on_update is not None:
            on_update(renderer)
    await port.disconnect()
    return renderer
