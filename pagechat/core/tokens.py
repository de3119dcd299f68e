"""Character-based token estimation.

This is a budget heuristic, not a tokenizer: the count depends only on the
number of characters, never on where real token boundaries would fall.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any

from pagechat.constants import CHARS_PER_TOKEN

if TYPE_CHECKING:
    from collections.abc import Iterable


def message_content(message: Any) -> str:
    """Return a message's content, treating missing content as empty."""
    if isinstance(message, dict):
        content = message.get("content")
    else:
        content = getattr(message, "content", None)
    return content if isinstance(content, str) else ""


def message_role(message: Any) -> str | None:
    """Return a message's role, or ``None`` when it has none."""
    if isinstance(message, dict):
        return message.get("role")
    return getattr(message, "role", None)


def estimate_text_tokens(text: str | None) -> int:
    """Estimate tokens for a single string (~4 chars per token, rounded up)."""
    return math.ceil(len(text or "") / CHARS_PER_TOKEN)


def estimate_token_count(messages: Iterable[Any]) -> int:
    """Estimate the token count of a message list.

    Sums ``len(content)`` over all messages and divides by
    :data:`~pagechat.constants.CHARS_PER_TOKEN`, rounding up. An empty list
    yields 0.
    """
    total_chars = sum(len(message_content(m)) for m in messages)
    return math.ceil(total_chars / CHARS_PER_TOKEN)
