"""Tests for the record accumulator and SSE helpers."""

from __future__ import annotations

import pytest

from pagechat.core.sse import (
    RecordAccumulator,
    extract_content_from_chunk,
    format_sse_record,
    parse_chunk,
)


def test_accumulator_holds_incomplete_fragment() -> None:
    acc = RecordAccumulator("\n\n")
    assert acc.feed('data: {"content":"He') == []
    assert acc.pending == 'data: {"content":"He'
    assert acc.feed('llo"}\n\ndata: {"con') == ['data: {"content":"Hello"}']
    assert acc.take_pending() == 'data: {"con'
    assert acc.pending == ""


def test_accumulator_splits_several_records_at_once() -> None:
    acc = RecordAccumulator()
    assert acc.feed("a\nb\nc\n") == ["a", "b", "c"]
    assert acc.pending == ""


def test_accumulator_rejects_empty_delimiter() -> None:
    with pytest.raises(ValueError, match="delimiter"):
        RecordAccumulator("")


def test_format_sse_record_is_compact_and_keeps_unicode() -> None:
    assert format_sse_record("Hello") == 'data: {"content":"Hello"}\n\n'
    assert format_sse_record("héllo\n") == 'data: {"content":"héllo\\n"}\n\n'


@pytest.mark.parametrize(
    ("record", "expected"),
    [
        ('data: {"content":"x"}', {"content": "x"}),
        ('data:{"content":"x"}', {"content": "x"}),
        ("data: [DONE]", None),
        ("event: ping", None),
        ("data: not json", None),
        ("data: [1, 2]", None),
    ],
)
def test_parse_chunk(record: str, expected: dict | None) -> None:
    assert parse_chunk(record) == expected


def test_extract_content_from_chunk() -> None:
    assert extract_content_from_chunk({"content": "abc"}) == "abc"
    assert extract_content_from_chunk({"content": 3}) == ""
    assert extract_content_from_chunk({}) == ""
