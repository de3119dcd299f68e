"""Map decoded ``application/vnd.amazon.eventstream`` messages to envelopes.

Framing and checksums are handled by :class:`botocore.eventstream.EventStreamBuffer`;
this module only turns its messages into the response-stream envelopes the
transcoder consumes.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from botocore.eventstream import EventStreamMessage

LOGGER = logging.getLogger(__name__)


def _json_payload(payload: bytes) -> dict[str, Any]:
    if not payload:
        return {}
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError:
        return {"message": payload.decode("utf-8", errors="replace")}
    return parsed if isinstance(parsed, dict) else {"message": str(parsed)}


def to_envelope(message: EventStreamMessage) -> dict[str, Any]:
    """Convert a decoded message into a response-stream envelope.

    ``chunk`` events become ``{"chunk": {"bytes": <decoded bytes>}}``;
    exceptions become ``{<exception type>: {"message": ...}}``.
    """
    headers = message.headers
    message_type = headers.get(":message-type", "event")
    if message_type == "event":
        event_type = headers.get(":event-type", "")
        body = _json_payload(message.payload)
        if event_type == "chunk":
            return {"chunk": {"bytes": base64.b64decode(body.get("bytes", ""))}}
        return {event_type: body}
    if message_type == "exception":
        exception_type = headers.get(":exception-type", "internalServerException")
        return {exception_type: _json_payload(message.payload)}

    error_code = headers.get(":error-code", "UnknownError")
    error_message = headers.get(":error-message", "")
    LOGGER.debug("Event-stream error message: %s %s", error_code, error_message)
    text = f"{error_code}: {error_message}" if error_message else error_code
    return {"internalServerException": {"message": text}}
