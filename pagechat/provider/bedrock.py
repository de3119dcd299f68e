"""Streaming client for Anthropic models on Amazon Bedrock.

Calls ``InvokeModelWithResponseStream`` over plain HTTPS with a Bedrock API
key (bearer token) and decodes the event-stream response body into
response-stream envelopes.
"""

from __future__ import annotations

import json
import logging
import os
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
from botocore.eventstream import EventStreamBuffer

from pagechat.constants import (
    DEFAULT_AWS_REGION,
    DEFAULT_MODEL_ID,
    PROVIDER_NAME,
    PROVIDER_REQUEST_TIMEOUT,
)
from pagechat.provider.base import ProviderClient, ProviderError
from pagechat.provider.eventstream import to_envelope

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

LOGGER = logging.getLogger(__name__)

API_KEY_ENV = "AWS_BEARER_TOKEN_BEDROCK"


def _error_message(body: bytes, response: httpx.Response) -> str:
    try:
        parsed = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        parsed = None
    if isinstance(parsed, dict):
        message = parsed.get("message") or parsed.get("Message")
        if message:
            return str(message)
    text = body.decode("utf-8", errors="replace").strip()
    return text or f"Bedrock responded with status {response.status_code}: {response.reason_phrase}"


class BedrockEventStream:
    """Async iterator of envelopes read from one streaming response."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self._buffer = EventStreamBuffer()

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        return self._envelopes()

    async def _envelopes(self) -> AsyncIterator[dict[str, Any]]:
        async for data in self._response.aiter_bytes():
            self._buffer.add_data(data)
            for message in self._buffer:
                yield to_envelope(message)

    async def aclose(self) -> None:
        """Close the underlying HTTP response."""
        await self._response.aclose()


class BedrockProvider(ProviderClient):
    """Bedrock runtime client for one model."""

    name = PROVIDER_NAME

    def __init__(
        self,
        *,
        region: str = DEFAULT_AWS_REGION,
        model_id: str = DEFAULT_MODEL_ID,
        api_key: str | None = None,
        endpoint_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = PROVIDER_REQUEST_TIMEOUT,
    ) -> None:
        """Initialize the client; ``api_key`` defaults to ``$AWS_BEARER_TOKEN_BEDROCK``."""
        self.region = region
        self.model_id = model_id
        self.api_key = api_key if api_key is not None else os.environ.get(API_KEY_ENV)
        self.endpoint_url = (endpoint_url or f"https://bedrock-runtime.{region}.amazonaws.com").rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def invoke_url(self) -> str:
        """URL of the streaming invocation for the configured model."""
        return f"{self.endpoint_url}/model/{quote(self.model_id, safe='')}/invoke-with-response-stream"

    async def open_stream(self, payload: dict[str, Any]) -> BedrockEventStream:
        """Send the invocation and return the response stream once accepted."""
        if not self.api_key:
            msg = f"Bedrock API key is not set. Set {API_KEY_ENV} or pass --bedrock-api-key."
            raise ProviderError(msg)

        request = self._client.build_request(
            "POST",
            self.invoke_url,
            json=payload,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
                "Accept": "application/vnd.amazon.eventstream",
                "X-Amzn-Bedrock-Accept": "application/json",
            },
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise ProviderError(str(exc) or type(exc).__name__) from exc

        if response.status_code != 200:  # noqa: PLR2004
            body = await response.aread()
            await response.aclose()
            raise ProviderError(_error_message(body, response), status_code=response.status_code)

        LOGGER.info("Bedrock API response status: OK (stream starting)")
        return BedrockEventStream(response)

    async def aclose(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._owns_client:
            await self._client.aclose()
