"""Bound a chat history to a token budget, keeping the system messages at its head."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pagechat.core.tokens import estimate_token_count, message_role

LOGGER = logging.getLogger(__name__)

MAX_ESSENTIAL_MESSAGES = 2


@dataclass(frozen=True)
class TruncationResult:
    """Messages to send and whether anything was dropped."""

    messages: list[Any]
    was_truncated: bool


def split_essential(messages: list[Any]) -> tuple[list[Any], list[Any]]:
    """Split leading system messages (at most two) from the remaining history."""
    essential: list[Any] = []
    for message in messages[:MAX_ESSENTIAL_MESSAGES]:
        if message_role(message) != "system":
            break
        essential.append(message)
    return essential, list(messages[len(essential) :])


def truncate_messages(messages: list[Any], limit: int) -> TruncationResult:
    """Truncate ``messages`` so their estimated token count fits ``limit``.

    Up to two leading system messages are always kept. The rest of the history
    is walked newest-first and kept while it fits; the walk stops at the first
    message that does not fit, so the kept history is always a contiguous
    suffix. If the system messages alone exceed the limit they are returned on
    their own, even though that result still does not fit.
    """
    initial_tokens = estimate_token_count(messages)
    if initial_tokens <= limit:
        return TruncationResult(messages=list(messages), was_truncated=False)

    essential, history = split_essential(messages)
    essential_tokens = sum(estimate_token_count([m]) for m in essential)

    if essential_tokens > limit:
        LOGGER.warning(
            "Essential system messages (%d tokens) exceed limit (%d). "
            "Returning only essential messages.",
            essential_tokens,
            limit,
        )
        return TruncationResult(messages=essential, was_truncated=True)

    remaining_budget = limit - essential_tokens
    kept: list[Any] = []
    history_tokens = 0

    # Newest first
    for message in reversed(history):
        message_tokens = estimate_token_count([message])
        if history_tokens + message_tokens > remaining_budget:
            break
        kept.append(message)
        history_tokens += message_tokens

    kept.reverse()
    final_messages = essential + kept

    LOGGER.info(
        "Truncation occurred. Input: %d, Output: %d tokens (Limit: %d). Final message count: %d",
        initial_tokens,
        estimate_token_count(final_messages),
        limit,
        len(final_messages),
    )
    return TruncationResult(messages=final_messages, was_truncated=True)
