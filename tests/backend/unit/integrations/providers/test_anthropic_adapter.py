from __future__ import annotations

import json

from collections.abc import AsyncIterator, Callable
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from api.middleware.exception_handlers import ProviderHTTPError, ProviderResponseShapeError
from integrations.providers import AnthropicAdapter, CompletionRequest, StreamCallbacks
from models.chat_models import ConversationTurn


def _request(**overrides: Any) -> CompletionRequest:
    data: dict[str, Any] = {
        "model_name": "claude-3-5-sonnet-latest",
        "system_prompt": "You are terse.",
        "user_message": "Status?",
        "temperature": 0.2,
        "max_tokens": 512,
    }
    data.update(overrides)
    return CompletionRequest(**data)


def _adapter(client: httpx.AsyncClient | None = None) -> AnthropicAdapter:
    return AnthropicAdapter(client or httpx.AsyncClient(), api_key="sk-ant-test")


def _sse(*events: dict[str, Any]) -> str:
    return "".join(f"event: {event['type']}\ndata: {json.dumps(event)}\n\n" for event in events)


def test_request_uses_top_level_system_and_vendor_headers() -> None:
    vendor_request = _adapter().build_request(_request())

    assert vendor_request.url == "https://api.anthropic.com/v1/messages"
    assert vendor_request.headers["x-api-key"] == "sk-ant-test"
    assert vendor_request.headers["anthropic-version"] == "2023-06-01"
    assert "Authorization" not in vendor_request.headers
    assert vendor_request.body["system"] == "You are terse."
    assert vendor_request.body["messages"] == [{"role": "user", "content": "Status?"}]
    assert vendor_request.body["temperature"] == 0.2
    assert vendor_request.body["max_tokens"] == 512
    assert "stream" not in vendor_request.body


def test_history_drops_leading_assistant_turns() -> None:
    history = (
        ConversationTurn(role="assistant", content="Welcome!"),
        ConversationTurn(role="user", content="hi"),
        ConversationTurn(role="assistant", content="hello"),
    )

    messages = _adapter().build_request(_request(history=history), stream=True).body["messages"]

    assert [m["role"] for m in messages] == ["user", "assistant", "user"]
    assert messages[0]["content"] == "hi"
    assert all(m["role"] != "system" for m in messages)


@pytest.mark.asyncio
async def test_complete_reads_first_content_block(mock_http: Callable[..., httpx.AsyncClient]) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"content": [{"type": "text", "text": "All good."}]})

    assert await _adapter(mock_http(handler)).complete(_request()) == "All good."


@pytest.mark.asyncio
async def test_complete_with_empty_content_is_shape_error(mock_http: Callable[..., httpx.AsyncClient]) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"content": []})

    with pytest.raises(ProviderResponseShapeError):
        await _adapter(mock_http(handler)).complete(_request())


@pytest.mark.asyncio
async def test_stream_delta_then_message_stop(mock_http: Callable[..., httpx.AsyncClient]) -> None:
    body = _sse(
        {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "ok"}},
        {"type": "message_stop"},
    )

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=body)

    on_token, on_complete, on_error = AsyncMock(), AsyncMock(), AsyncMock()
    await _adapter(mock_http(handler)).stream(
        _request(), StreamCallbacks(on_token=on_token, on_complete=on_complete, on_error=on_error)
    )

    on_token.assert_awaited_once_with("ok")
    on_complete.assert_awaited_once_with("ok")
    on_error.assert_not_called()


@pytest.mark.asyncio
async def test_stream_ignores_non_delta_events(mock_http: Callable[..., httpx.AsyncClient]) -> None:
    body = _sse(
        {"type": "message_start", "message": {"id": "msg_1", "content": []}},
        {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
        {"type": "ping"},
        {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Hello"}},
        {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": " world"}},
        {"type": "content_block_stop", "index": 0},
        {"type": "message_delta", "delta": {"stop_reason": "end_turn"}},
        {"type": "message_stop"},
    )

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=body)

    tokens = [t async for t in _adapter(mock_http(handler)).stream_tokens(_request())]

    assert tokens == ["Hello", " world"]


@pytest.mark.asyncio
async def test_stream_error_event_fails_the_stream(mock_http: Callable[..., httpx.AsyncClient]) -> None:
    body = _sse(
        {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "par"}},
        {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}},
    )

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=body)

    on_token, on_complete, on_error = AsyncMock(), AsyncMock(), AsyncMock()
    await _adapter(mock_http(handler)).stream(
        _request(), StreamCallbacks(on_token=on_token, on_complete=on_complete, on_error=on_error)
    )

    on_token.assert_awaited_once_with("par")
    on_complete.assert_not_called()
    error = on_error.await_args.args[0]
    assert isinstance(error, ProviderHTTPError)
    assert error.vendor_message == "Overloaded"


@pytest.mark.asyncio
async def test_stream_frames_split_mid_line(mock_http: Callable[..., httpx.AsyncClient]) -> None:
    events = [
        {"type": "message_start", "message": {"id": "msg_1"}},
        {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Grüße"}},
        {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": ", team"}},
        {"type": "message_stop"},
    ]
    raw = "".join(f"event: {e['type']}\ndata: {json.dumps(e, ensure_ascii=False)}\n\n" for e in events)
    encoded = raw.encode("utf-8")
    pieces = [encoded[i : i + 9] for i in range(0, len(encoded), 9)]

    async def byte_stream() -> AsyncIterator[bytes]:
        for piece in pieces:
            yield piece

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=byte_stream())

    on_token, on_complete, on_error = AsyncMock(), AsyncMock(), AsyncMock()
    await _adapter(mock_http(handler)).stream(
        _request(), StreamCallbacks(on_token=on_token, on_complete=on_complete, on_error=on_error)
    )

    assert [c.args[0] for c in on_token.await_args_list] == ["Grüße", ", team"]
    on_complete.assert_awaited_once_with("Grüße, team")
    on_error.assert_not_called()
