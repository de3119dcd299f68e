"""Transcode a provider response stream into normalized SSE text deltas.

The provider yields envelopes. A ``chunk`` envelope carries raw bytes holding
zero or more newline-delimited JSON frames, possibly split across envelopes;
any ``*Exception`` envelope is an SDK/infrastructure error. Each JSON frame is
classified into exactly one :data:`StreamEvent` variant and dispatched.

Once a terminal error is seen the transcoder raises, stops reading the source
and closes it. Nothing is emitted after an error.
"""

from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pagechat.constants import PROVIDER_NAME
from pagechat.core.sse import RecordAccumulator, format_sse_record

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator

LOGGER = logging.getLogger(__name__)

SDK_EXCEPTION_FIELDS = (
    "internalServerException",
    "modelStreamErrorException",
    "throttlingException",
    "validationException",
    "serviceUnavailableException",
    "modelTimeoutException",
)
IGNORED_FRAME_TYPES = frozenset({"message_start", "content_block_start", "content_block_stop"})


class StreamTranscodeError(Exception):
    """Terminal error raised after the response stream has started."""


class EmbeddedStreamError(StreamTranscodeError):
    """The model reported an error inside a normal-looking JSON frame."""


class ProviderSDKError(StreamTranscodeError):
    """The transport reported an SDK/infrastructure error (throttling, validation...)."""


# --- Stream events ---


@dataclass(frozen=True)
class TextDelta:
    """A fragment of generated text."""

    text: str


@dataclass(frozen=True)
class StreamStop:
    """The model finished its turn."""


@dataclass(frozen=True)
class ProtocolError:
    """An SDK-level error envelope."""

    message: str


@dataclass(frozen=True)
class EmbeddedError:
    """A model-level ``error`` frame."""

    message: str


@dataclass(frozen=True)
class Ignored:
    """A known frame type that carries nothing to forward."""

    type: str


@dataclass(frozen=True)
class Unknown:
    """A frame or envelope this transcoder does not understand."""

    type: str | None


StreamEvent = TextDelta | StreamStop | ProtocolError | EmbeddedError | Ignored | Unknown


def classify_frame(frame: Any) -> StreamEvent:
    """Classify one decoded JSON frame by its ``type`` discriminator."""
    if not isinstance(frame, dict):
        return Unknown(type=type(frame).__name__)

    frame_type = frame.get("type")
    if frame_type == "content_block_delta":
        delta = frame.get("delta")
        if isinstance(delta, dict) and delta.get("type") == "text_delta":
            text = delta.get("text")
            return TextDelta(text=text if isinstance(text, str) else "")
        return Unknown(type=frame_type)
    if frame_type == "message_stop":
        return StreamStop()
    if frame_type == "error":
        error = frame.get("error")
        message = error.get("message") if isinstance(error, dict) else None
        return EmbeddedError(message=message or "Unknown")
    if frame_type in IGNORED_FRAME_TYPES:
        return Ignored(type=frame_type)
    return Unknown(type=frame_type)


def classify_envelope(envelope: dict[str, Any]) -> ProtocolError | Unknown:
    """Classify an envelope that does not carry chunk bytes."""
    for key, details in envelope.items():
        if key in SDK_EXCEPTION_FIELDS or key.endswith("Exception"):
            message = details.get("message") if isinstance(details, dict) else None
            return ProtocolError(message=message or "Unknown SDK stream error")
    return Unknown(type=",".join(sorted(envelope)) or None)


def _chunk_bytes(envelope: Any) -> bytes | None:
    if not isinstance(envelope, dict):
        return None
    chunk = envelope.get("chunk")
    if not isinstance(chunk, dict):
        return None
    data = chunk.get("bytes")
    if isinstance(data, str):
        return data.encode("utf-8")
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    return None


class StreamTranscoder:
    """Turn provider envelopes into ``data: {"content": ...}\\n\\n`` records.

    Iterate over an instance to consume it; it can only be iterated once.
    """

    def __init__(
        self,
        source: AsyncIterable[dict[str, Any]],
        *,
        provider_name: str = PROVIDER_NAME,
    ) -> None:
        self.provider_name = provider_name
        self._source = source
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._lines = RecordAccumulator("\n")
        self.envelope_count = 0
        self.delta_count = 0
        self.stop_received = False
        self.error: StreamTranscodeError | None = None

    def __aiter__(self) -> AsyncIterator[str]:
        return self._transcode()

    async def _transcode(self) -> AsyncIterator[str]:
        iterator = self._source.__aiter__()
        try:
            async for envelope in iterator:
                self.envelope_count += 1
                for event in self._events(envelope):
                    record = self._dispatch(event)
                    if record is not None:
                        yield record
            for event in self._drain():
                record = self._dispatch(event)
                if record is not None:
                    yield record
        except StreamTranscodeError:
            raise
        except Exception as exc:
            LOGGER.exception("Error iterating %s stream", self.provider_name)
            self.error = StreamTranscodeError(str(exc) or type(exc).__name__)
            raise self.error from exc
        finally:
            await self._close(iterator)
            LOGGER.debug(
                "%s stream finished: %d envelopes, %d deltas, stop=%s, error=%s",
                self.provider_name,
                self.envelope_count,
                self.delta_count,
                self.stop_received,
                self.error,
            )

    async def _close(self, iterator: Any) -> None:
        targets = [iterator] if iterator is self._source else [iterator, self._source]
        for target in targets:
            aclose = getattr(target, "aclose", None)
            if aclose is not None:
                await aclose()

    def _events(self, envelope: dict[str, Any]) -> list[StreamEvent]:
        data = _chunk_bytes(envelope)
        if data is None:
            return [classify_envelope(envelope if isinstance(envelope, dict) else {})]
        return [classify_frame(frame) for frame in self._frames(self._decoder.decode(data))]

    def _drain(self) -> list[StreamEvent]:
        frames = self._frames(self._decoder.decode(b"", final=True))
        leftover = self._lines.take_pending()
        if leftover.strip():
            LOGGER.warning("Discarding incomplete trailing %s data: %r", self.provider_name, leftover)
        return [classify_frame(frame) for frame in frames]

    def _frames(self, text: str) -> list[Any]:
        frames = [frame for line in self._lines.feed(text) for frame in self._parse_line(line)]
        # A complete object without a trailing newline is consumed right away.
        pending = self._lines.pending
        if pending.strip():
            try:
                frames.append(json.loads(pending))
            except json.JSONDecodeError:
                pass
            else:
                self._lines.take_pending()
        return frames

    def _parse_line(self, line: str) -> list[Any]:
        if not line.strip():
            return []
        try:
            return [json.loads(line)]
        except json.JSONDecodeError:
            LOGGER.exception("Error parsing %s chunk JSON: %r", self.provider_name, line)
            return []

    def _dispatch(self, event: StreamEvent) -> str | None:
        if self.error is not None:
            return None
        if isinstance(event, TextDelta):
            if not event.text:
                LOGGER.debug("Delta text was empty, skipping")
                return None
            self.delta_count += 1
            return format_sse_record(event.text)
        if isinstance(event, StreamStop):
            self.stop_received = True
            LOGGER.debug("%s message_stop received", self.provider_name)
            return None
        if isinstance(event, EmbeddedError):
            LOGGER.error("%s stream error chunk: %s", self.provider_name, event.message)
            self.error = EmbeddedStreamError(f"{self.provider_name} error: {event.message}")
            raise self.error
        if isinstance(event, ProtocolError):
            LOGGER.error("%s SDK stream error event: %s", self.provider_name, event.message)
            self.error = ProviderSDKError(f"{self.provider_name} SDK error: {event.message}")
            raise self.error
        if isinstance(event, Unknown):
            LOGGER.warning("Received unhandled %s chunk type: %s", self.provider_name, event.type)
        return None
