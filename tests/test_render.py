"""Tests for the UI-side stream renderer."""

from __future__ import annotations

import logging

import pytest

from pagechat.bridge.port import MemoryPort
from pagechat.bridge.render import StreamOutcome, StreamRenderer, consume_port


def test_records_split_across_chunks() -> None:
    renderer = StreamRenderer()
    assert renderer.handle({"chunk": 'data: {"content":"Hel'}) == ""
    assert renderer.handle({"chunk": 'lo"}\n\ndata: {"content":" Wor'}) == "Hello"
    assert renderer.handle({"chunk": 'ld"}\n\ndata: [DONE]\n\n'}) == " World"
    renderer.handle({"done": True})
    assert renderer.content == "Hello World"
    assert renderer.outcome is StreamOutcome.COMPLETED
    assert renderer.display_text() == "Hello World"


def test_pending_until_terminal() -> None:
    renderer = StreamRenderer()
    renderer.handle({"chunk": 'data: {"content":"x"}\n\n'})
    assert renderer.outcome is StreamOutcome.PENDING


def test_failed_before_start() -> None:
    renderer = StreamRenderer()
    renderer.handle({"error": "Bedrock error: Access denied"})
    assert renderer.outcome is StreamOutcome.FAILED_BEFORE_START
    assert renderer.display_text() == "Error: Bedrock error: Access denied"


def test_failed_mid_stream_keeps_partial_content() -> None:
    renderer = StreamRenderer()
    renderer.handle({"chunk": 'data: {"content":"Partial answer"}\n\n'})
    renderer.handle({"error": "peer closed connection"})
    assert renderer.outcome is StreamOutcome.FAILED_MID_STREAM
    assert renderer.display_text() == "Partial answer\n\n[Error: peer closed connection]"


def test_disconnect_without_terminal() -> None:
    renderer = StreamRenderer()
    renderer.handle_disconnect()
    assert renderer.outcome is StreamOutcome.DISCONNECTED
    assert renderer.display_text() == "Error: Stream disconnected unexpectedly."


def test_messages_after_terminal_are_ignored(caplog: pytest.LogCaptureFixture) -> None:
    renderer = StreamRenderer()
    renderer.handle({"done": True})
    with caplog.at_level(logging.WARNING):
        renderer.handle({"chunk": 'data: {"content":"late"}\n\n'})
        renderer.handle({"error": "late"})
    renderer.handle_disconnect()
    assert renderer.content == ""
    assert renderer.outcome is StreamOutcome.COMPLETED
    assert "after the terminal signal" in caplog.text


@pytest.mark.asyncio
async def test_consume_port_reports_updates() -> None:
    ui, bridge = MemoryPort.pair()
    await bridge.post_message({"chunk": 'data: {"content":"A"}\n\n'})
    await bridge.post_message({"chunk": 'data: {"content":"B"}\n\n'})
    await bridge.post_message({"done": True})

    snapshots: list[str] = []
    renderer = await consume_port(ui, on_update=lambda r: snapshots.append(r.content))
    assert snapshots == ["A", "AB", "AB"]
    assert renderer.outcome is StreamOutcome.COMPLETED
    assert not bridge.connected


@pytest.mark.asyncio
async def test_consume_port_detects_disconnect() -> None:
    ui, bridge = MemoryPort.pair()
    await bridge.post_message({"chunk": 'data: {"content":"half"}\n\n'})
    await bridge.disconnect()
    renderer = await consume_port(ui)
    assert renderer.outcome is StreamOutcome.DISCONNECTED
    assert renderer.display_text() == "half\n\n[Error: Stream disconnected unexpectedly.]"
