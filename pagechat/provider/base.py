"""Abstract base class for model providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncIterable


class ProviderError(Exception):
    """Raised when the provider call fails before any output was streamed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ProviderClient(ABC):
    """A streaming model provider.

    ``open_stream`` performs the request and returns once the provider has
    accepted it; any failure up to that point raises :class:`ProviderError`.
    The returned iterable yields response-stream envelopes, either
    ``{"chunk": {"bytes": b"..."}}`` or an exception member such as
    ``{"throttlingException": {"message": "..."}}``.
    """

    name: str = "provider"

    @abstractmethod
    async def open_stream(self, payload: dict[str, Any]) -> AsyncIterable[dict[str, Any]]:
        """Start a streaming invocation with ``payload``."""
        ...

    async def aclose(self) -> None:  # noqa: B027
        """Release pooled connections held by the client."""
