"""Record buffering and Server-Sent-Events helpers.

The same accumulator splits newline-delimited provider JSON in the relay and
``\\n\\n``-terminated SSE records on the UI side.
"""

from __future__ import annotations

import json
from typing import Any

SSE_DELIMITER = "\n\n"
DONE_MARKER = "[DONE]"


class RecordAccumulator:
    """Collect text fragments and hand out complete, delimiter-terminated records.

    The last, incomplete fragment is held back until more text arrives.
    """

    def __init__(self, delimiter: str = "\n") -> None:
        if not delimiter:
            msg = "delimiter must be a non-empty string"
            raise ValueError(msg)
        self.delimiter = delimiter
        self._buffer = ""

    @property
    def pending(self) -> str:
        """The buffered, not yet terminated fragment."""
        return self._buffer

    def feed(self, text: str) -> list[str]:
        """Append ``text`` and return every record completed by it."""
        self._buffer += text
        *records, self._buffer = self._buffer.split(self.delimiter)
        return records

    def take_pending(self) -> str:
        """Return and clear the incomplete fragment."""
        pending, self._buffer = self._buffer, ""
        return pending


def format_sse_record(content: str) -> str:
    """Format one normalized delta as an SSE ``data:`` record."""
    payload = json.dumps({"content": content}, separators=(",", ":"), ensure_ascii=False)
    return f"data: {payload}{SSE_DELIMITER}"


def parse_chunk(record: str) -> dict[str, Any] | None:
    """Parse the JSON payload of one SSE record.

    Returns None for records without a ``data:`` field, for the ``[DONE]``
    marker and for payloads that are not JSON objects.
    """
    data_lines = [
        line[5:].lstrip() for line in record.splitlines() if line.startswith("data:")
    ]
    if not data_lines:
        return None
    payload = "\n".join(data_lines).strip()
    if payload == DONE_MARKER:
        return None
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def extract_content_from_chunk(chunk: dict[str, Any]) -> str:
    """Return the text carried by a normalized delta."""
    content = chunk.get("content")
    return content if isinstance(content, str) else ""
