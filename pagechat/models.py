"""Chat data models shared by the relay and the port bridge."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant", "system"]


class ChatMessage(BaseModel):
    """A single chat message, in chronological order within a history."""

    model_config = ConfigDict(extra="ignore")

    role: Role
    content: str = ""


class PageContext(BaseModel):
    """Per-request page context. Never part of the message history."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    system_prompt: str | None = Field(default=None, alias="systemPrompt")
    page_content: str | None = Field(default=None, alias="pageContent")
    title: str | None = None
    url: str | None = None


class ChatRequest(BaseModel):
    """Body of a relay request (also the single inbound port message)."""

    model_config = ConfigDict(extra="ignore")

    messages: list[ChatMessage] = Field(min_length=1)
    context: PageContext | None = None

    def to_wire(self) -> dict:
        """Serialize with the camelCase field names used on the wire."""
        return self.model_dump(by_alias=True, exclude_none=True)
