"""Build the Anthropic Messages payload sent to Bedrock.

System messages that survive truncation are appended to the system blocks
after the context prompt and page block, not sent as turns.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pagechat.constants import ANTHROPIC_VERSION, DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
from pagechat.core.tokens import estimate_text_tokens, message_content, message_role

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pagechat.models import PageContext

LOGGER = logging.getLogger(__name__)

PAGE_CONTEXT_TEMPLATE = """\
Page Title: {title}
URL: {url}
--- Page Content Start ---
{content}
--- Page Content End ---"""


def _text_block(text: str) -> dict[str, str]:
    return {"type": "text", "text": text}


def build_system_blocks(context: PageContext | None) -> list[dict[str, str]]:
    """Fold the optional page context into system text blocks.

    The system prompt comes first, then the templated page block. Without
    ``page_content`` the page block is left out entirely.
    """
    if context is None:
        LOGGER.debug("No context object found in request body")
        return []

    blocks: list[dict[str, str]] = []
    if context.system_prompt:
        blocks.append(_text_block(context.system_prompt))
    if context.page_content:
        LOGGER.debug(
            "Page context adds ~%d tokens outside the history budget",
            estimate_text_tokens(context.page_content),
        )
        blocks.append(
            _text_block(
                PAGE_CONTEXT_TEMPLATE.format(
                    title=context.title or "N/A",
                    url=context.url or "N/A",
                    content=context.page_content,
                ),
            ),
        )
    else:
        LOGGER.warning("Context object provided but pageContent is missing")
    return blocks


def coalesce_messages(messages: Iterable[Any]) -> tuple[list[dict[str, Any]], list[str]]:
    """Merge consecutive same-role messages into alternating provider turns.

    Every input message becomes one text block, in order. System messages
    cannot be provider turns; their texts are returned separately.
    """
    turns: list[dict[str, Any]] = []
    system_texts: list[str] = []
    for message in messages:
        role = message_role(message)
        content = message_content(message)
        if role == "system":
            system_texts.append(content)
            continue
        if role not in ("user", "assistant"):
            LOGGER.warning("Skipping message with unsupported role: %r", role)
            continue
        if turns and turns[-1]["role"] == role:
            turns[-1]["content"].append(_text_block(content))
        else:
            turns.append({"role": role, "content": [_text_block(content)]})
    return turns, system_texts


def build_provider_payload(
    messages: Iterable[Any],
    context: PageContext | None = None,
    *,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    temperature: float = DEFAULT_TEMPERATURE,
    anthropic_version: str = ANTHROPIC_VERSION,
) -> dict[str, Any]:
    """Assemble the full request body for an (already truncated) history."""
    turns, system_texts = coalesce_messages(messages)
    system = build_system_blocks(context)
    system.extend(_text_block(text) for text in system_texts if text)
    return {
        "anthropic_version": anthropic_version,
        "system": system,
        "messages": turns,
        "max_tokens": max_tokens,
        "temperature": temperature,
    }
