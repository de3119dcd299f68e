"""Tests for the relay endpoint."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import pytest
from fastapi.testclient import TestClient

from pagechat.provider.base import ProviderError
from pagechat.relay.api import InvalidRequestError, create_app, parse_request_body

if TYPE_CHECKING:
    from collections.abc import Callable


@pytest.fixture
def happy_provider(
    fake_provider: Any,
    chunk: Callable[..., dict[str, Any]],
    text_delta: Callable[[str], dict[str, Any]],
) -> Any:
    return fake_provider(
        [
            chunk(text_delta("Hello")),
            chunk(text_delta(" ")),
            chunk(text_delta("World")),
            chunk({"type": "message_stop"}),
        ],
    )


class TestChatEndpoint:
    """Tests for POST /api/chat and the other methods."""

    def test_streams_sse(self, happy_provider: Any) -> None:
        with TestClient(create_app(happy_provider)) as client:
            response = client.post(
                "/api/chat",
                json={"messages": [{"role": "user", "content": "Hi"}]},
            )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.text == (
            'data: {"content":"Hello"}\n\ndata: {"content":" "}\n\ndata: {"content":"World"}\n\n'
        )
        assert happy_provider.closed

    def test_options_preflight(self, happy_provider: Any) -> None:
        client = TestClient(create_app(happy_provider))
        response = client.options("/api/chat")
        assert response.status_code == 204
        assert response.headers["access-control-allow-methods"] == "POST, OPTIONS"
        assert response.headers["access-control-allow-headers"] == "Content-Type"
        assert happy_provider.payloads == []

    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
    def test_other_methods_not_allowed(self, happy_provider: Any, method: str) -> None:
        client = TestClient(create_app(happy_provider))
        response = client.request(method, "/api/chat")
        assert response.status_code == 405
        assert response.text == "Method Not Allowed"

    @pytest.mark.parametrize(
        "body",
        [b"not json", b"[]", b"{}", b'{"messages": "hi"}', b'{"messages": []}', b'{"messages": [], "context": 3}'],
    )
    def test_invalid_body(self, happy_provider: Any, body: bytes) -> None:
        client = TestClient(create_app(happy_provider))
        response = client.post("/api/chat", content=body, headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body: messages array is required."}
        assert happy_provider.payloads == []

    def test_provider_failure_before_stream(self, fake_provider: Any) -> None:
        provider = fake_provider(error=ProviderError("Access denied", status_code=403))
        client = TestClient(create_app(provider))
        response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "Hi"}]})
        assert response.status_code == 500
        assert response.json() == {"error": "Access denied"}

    def test_payload_carries_context_and_truncated_history(self, happy_provider: Any) -> None:
        client = TestClient(create_app(happy_provider, token_limit=3, max_tokens=64, temperature=0.1))
        body = {
            "messages": [
                {"role": "system", "content": "sys"},
                {"role": "user", "content": "x" * 400},
                {"role": "assistant", "content": "ok"},
                {"role": "user", "content": "why?"},
            ],
            "context": {"systemPrompt": "Help.", "pageContent": "P" * 10_000, "title": "T"},
        }
        response = client.post("/api/chat", json=body)
        assert response.status_code == 200
        (payload,) = happy_provider.payloads
        assert payload["max_tokens"] == 64
        assert payload["temperature"] == 0.1
        assert payload["messages"] == [
            {"role": "assistant", "content": [{"type": "text", "text": "ok"}]},
            {"role": "user", "content": [{"type": "text", "text": "why?"}]},
        ]
        system_texts = [block["text"] for block in payload["system"]]
        assert system_texts[0] == "Help."
        assert system_texts[1].startswith("Page Title: T\nURL: N/A\n")
        assert system_texts[2] == "sys"

    def test_health(self, happy_provider: Any) -> None:
        client = TestClient(create_app(happy_provider, token_limit=10))
        assert client.get("/health").json() == {
            "status": "ok",
            "provider": "Bedrock",
            "model_id": "test-model",
            "token_limit": 10,
        }


def test_parse_request_body_keeps_messages_as_given() -> None:
    messages, context = parse_request_body(
        b'{"messages": [{"role": "user", "content": "a", "extra": 1}], "context": {"pageContent": "p"}}',
    )
    assert messages == [{"role": "user", "content": "a", "extra": 1}]
    assert context is not None
    assert context.page_content == "p"


def test_parse_request_body_rejects_bad_json() -> None:
    with pytest.raises(InvalidRequestError):
        parse_request_body(b"{")


def test_failed_requests_are_logged(happy_provider: Any, caplog: pytest.LogCaptureFixture) -> None:
    client = TestClient(create_app(happy_provider))
    with caplog.at_level(logging.INFO, logger="pagechat.server.common"):
        client.post("/api/chat", content=b"{}")
    assert "POST /api/chat from" in caplog.text
    assert "Request failed: POST /api/chat -> 400" in caplog.text
