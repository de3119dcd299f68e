"""FastAPI application factory for the chat relay."""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from pydantic import ValidationError

from pagechat.constants import (
    ANTHROPIC_VERSION,
    CHAT_ROUTE,
    CONTEXT_LIMIT_TOKENS,
    CORS_HEADERS,
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    INVALID_BODY_ERROR,
)
from pagechat.core.tokens import estimate_token_count
from pagechat.core.truncation import truncate_messages
from pagechat.models import PageContext
from pagechat.relay.payload import build_provider_payload
from pagechat.relay.transcoder import StreamTranscoder
from pagechat.server.common import RequestLoggingMiddleware

if TYPE_CHECKING:
    from pagechat.provider.base import ProviderClient

LOGGER = logging.getLogger(__name__)

ALL_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS", "HEAD", "PATCH"]


class InvalidRequestError(ValueError):
    """The request body is not a usable chat request."""


def parse_request_body(raw_body: bytes) -> tuple[list[Any], PageContext | None]:
    """Return the message list and optional page context of a request body."""
    try:
        body = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidRequestError(INVALID_BODY_ERROR) from exc
    if not isinstance(body, dict):
        raise InvalidRequestError(INVALID_BODY_ERROR)

    messages = body.get("messages")
    if not isinstance(messages, list) or not messages:
        raise InvalidRequestError(INVALID_BODY_ERROR)

    raw_context = body.get("context")
    if not raw_context:
        return messages, None
    try:
        return messages, PageContext.model_validate(raw_context)
    except ValidationError as exc:
        raise InvalidRequestError(INVALID_BODY_ERROR) from exc


def _json_error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=CORS_HEADERS)


def create_app(
    provider: ProviderClient,
    *,
    token_limit: int = CONTEXT_LIMIT_TOKENS,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    temperature: float = DEFAULT_TEMPERATURE,
    anthropic_version: str = ANTHROPIC_VERSION,
) -> FastAPI:
    """Create the relay app around an injected provider client."""

    @asynccontextmanager
    async def lifespan(_app: FastAPI):  # noqa: ANN202
        LOGGER.info("Relay ready (provider=%s, token limit=%d)", provider.name, token_limit)
        yield
        LOGGER.info("Closing provider client...")
        await provider.aclose()

    app = FastAPI(title="Page Chat Relay", lifespan=lifespan)
    app.add_middleware(RequestLoggingMiddleware)

    app.state.provider = provider
    app.state.token_limit = token_limit

    @app.api_route(CHAT_ROUTE, methods=ALL_METHODS)
    async def chat(request: Request) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=CORS_HEADERS)
        if request.method != "POST":
            LOGGER.info("Method not allowed: %s", request.method)
            return PlainTextResponse("Method Not Allowed", status_code=405, headers=CORS_HEADERS)

        try:
            messages, context = parse_request_body(await request.body())
        except InvalidRequestError as exc:
            LOGGER.info("Rejected request body: %s", exc.__cause__ or exc)
            return _json_error(INVALID_BODY_ERROR, 400)

        # Page context is not part of the history budget
        result = truncate_messages(messages, token_limit)
        if result.was_truncated:
            LOGGER.info(
                "Message history truncated. Final message count: %d, estimated tokens: %d",
                len(result.messages),
                estimate_token_count(result.messages),
            )

        payload = build_provider_payload(
            result.messages,
            context,
            max_tokens=max_tokens,
            temperature=temperature,
            anthropic_version=anthropic_version,
        )
        LOGGER.debug(
            "Sending payload to %s: %d system blocks, %d turns",
            provider.name,
            len(payload["system"]),
            len(payload["messages"]),
        )

        try:
            source = await provider.open_stream(payload)
        except Exception as exc:
            LOGGER.exception("Error invoking %s model", provider.name)
            return _json_error(str(exc) or "Error communicating with AI model.", 500)

        # Status 200 is committed from here on; later errors abort the stream.
        return StreamingResponse(
            StreamTranscoder(source, provider_name=provider.name),
            media_type="text/event-stream",
            headers={**CORS_HEADERS, "Cache-Control": "no-cache"},
        )

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "provider": provider.name,
            "model_id": getattr(provider, "model_id", None),
            "token_limit": token_limit,
        }

    return app
