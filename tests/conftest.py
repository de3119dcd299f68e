"""Shared test fixtures and configuration."""

from __future__ import annotations

import base64
import contextlib
import io
import json
import struct
import zlib
from typing import TYPE_CHECKING, Any

import pytest
from rich.console import Console

from pagechat.provider.base import ProviderClient

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Set default timeout for all tests."""
    for item in items:
        with contextlib.suppress(AttributeError):
            item.add_marker(pytest.mark.timeout(3))


@pytest.fixture
def mock_console() -> Console:
    """Provide a console that writes to a StringIO for testing."""
    return Console(file=io.StringIO(), width=80, force_terminal=True)


class EnvelopeSource:
    """Async iterable of envelopes that records how far it was consumed."""

    def __init__(self, envelopes: list[dict[str, Any]]) -> None:
        self.envelopes = envelopes
        self.yielded = 0
        self.closed = False

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[dict[str, Any]]:
        for envelope in self.envelopes:
            self.yielded += 1
            yield envelope

    async def aclose(self) -> None:
        self.closed = True


class FakeProvider(ProviderClient):
    """Provider returning canned envelopes, or raising before the stream starts."""

    name = "Bedrock"
    model_id = "test-model"

    def __init__(self, envelopes: list[dict[str, Any]] | None = None, error: Exception | None = None) -> None:
        self.envelopes = envelopes or []
        self.error = error
        self.payloads: list[dict[str, Any]] = []
        self.sources: list[EnvelopeSource] = []
        self.closed = False

    async def open_stream(self, payload: dict[str, Any]) -> EnvelopeSource:
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        source = EnvelopeSource(self.envelopes)
        self.sources.append(source)
        return source

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def chunk() -> Callable[..., dict[str, Any]]:
    """Build a chunk envelope holding newline-delimited JSON frames."""

    def _chunk(*frames: dict[str, Any] | str) -> dict[str, Any]:
        lines = [f if isinstance(f, str) else json.dumps(f) for f in frames]
        return {"chunk": {"bytes": "".join(f"{line}\n" for line in lines).encode()}}

    return _chunk


@pytest.fixture
def text_delta() -> Callable[[str], dict[str, Any]]:
    """Build a ``content_block_delta`` frame carrying text."""

    def _delta(text: str) -> dict[str, Any]:
        return {
            "type": "content_block_delta",
            "index": 0,
            "delta": {"type": "text_delta", "text": text},
        }

    return _delta


@pytest.fixture
def envelope_source() -> type[EnvelopeSource]:
    """The recording envelope source class."""
    return EnvelopeSource


@pytest.fixture
def fake_provider() -> type[FakeProvider]:
    """The fake provider class."""
    return FakeProvider


def _encode_event(headers: dict[str, str], payload: bytes) -> bytes:
    raw_headers = b""
    for name, value in headers.items():
        raw_name, raw_value = name.encode(), value.encode()
        raw_headers += struct.pack(">B", len(raw_name)) + raw_name
        raw_headers += struct.pack(">BH", 7, len(raw_value)) + raw_value
    prelude = struct.pack(">II", 16 + len(raw_headers) + len(payload), len(raw_headers))
    prelude += struct.pack(">I", zlib.crc32(prelude))
    message = prelude + raw_headers + payload
    return message + struct.pack(">I", zlib.crc32(message))


@pytest.fixture
def encode_event() -> Callable[[dict[str, str], bytes], bytes]:
    """Encode one event-stream message with string headers, as Bedrock sends it."""
    return _encode_event


@pytest.fixture
def chunk_event() -> Callable[[dict[str, Any]], bytes]:
    """Encode a Bedrock ``chunk`` event carrying one JSON frame."""

    def _chunk_event(frame: dict[str, Any]) -> bytes:
        body = json.dumps({"bytes": base64.b64encode(json.dumps(frame).encode()).decode()})
        return _encode_event({":message-type": "event", ":event-type": "chunk"}, body.encode())

    return _chunk_event
