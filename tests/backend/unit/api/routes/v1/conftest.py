"""App fixtures for v1 route tests.

The store is an AsyncMock and vendors answer through httpx.MockTransport;
everything between them is the real service stack.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.dependencies import get_db, get_message_store, get_provider_registry
from api.middleware.exception_handlers import register_exception_handlers
from api.middleware.request_context import RequestContextMiddleware
from api.routes.v1 import router as v1_router
from integrations.providers import AnthropicAdapter, GoogleAdapter, OpenAIAdapter, ProviderRegistry
from models.chat_models import NewMessage

ASSISTANT_IDS = [
    "aaaaaaaa-0000-4000-8000-000000000001",
    "aaaaaaaa-0000-4000-8000-000000000002",
    "aaaaaaaa-0000-4000-8000-000000000003",
]


class VendorStub:
    """Programmable vendor responses keyed by API host."""

    def __init__(self) -> None:
        # host -> (status, JSON payload or raw text body)
        self.replies: dict[str, tuple[int, Any]] = {
            "api.openai.com": (200, {"choices": [{"message": {"content": "openai reply"}}]}),
            "api.anthropic.com": (200, {"content": [{"type": "text", "text": "anthropic reply"}]}),
            "generativelanguage.googleapis.com": (
                200,
                {"candidates": [{"content": {"parts": [{"text": "google reply"}]}}]},
            ),
        }
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.replies[request.url.host]
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)


@pytest.fixture
def vendors() -> VendorStub:
    return VendorStub()


@pytest.fixture
def registry(vendors: VendorStub, mock_http: Callable[..., httpx.AsyncClient]) -> ProviderRegistry:
    client = mock_http(vendors)
    return ProviderRegistry(
        {
            "openai": OpenAIAdapter(client, api_key="k1"),
            "anthropic": AnthropicAdapter(client, api_key="k2"),
            "google": GoogleAdapter(client, api_key="k3"),
        }
    )


@pytest.fixture
def store(make_assistant: Callable[..., Any], make_message: Callable[..., Any]) -> AsyncMock:
    assistants = {
        ASSISTANT_IDS[0]: make_assistant(id=ASSISTANT_IDS[0], name="Ana", model_provider="openai"),
        ASSISTANT_IDS[1]: make_assistant(id=ASSISTANT_IDS[1], name="Ben", model_provider="anthropic"),
        ASSISTANT_IDS[2]: make_assistant(id=ASSISTANT_IDS[2], name="Cy", model_provider="google"),
    }
    store = AsyncMock()
    store.get_assistant.side_effect = lambda assistant_id: assistants.get(assistant_id)
    store.get_recent_messages.return_value = []

    async def create(new: NewMessage) -> Any:
        return make_message(
            channel_id=new.channel_id,
            author_id=new.author_id,
            author_type=new.author_type.value,
            content=new.content,
            mentions=new.mentions,
            counts_toward_limit=new.counts_toward_limit,
        )

    store.create_message.side_effect = create
    return store


@pytest.fixture
def app(store: AsyncMock, registry: ProviderRegistry, mock_db_pool: MagicMock) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    app.add_middleware(RequestContextMiddleware)
    app.include_router(v1_router, prefix="/api/v1")

    app.dependency_overrides[get_db] = lambda: mock_db_pool
    app.dependency_overrides[get_message_store] = lambda: store
    app.dependency_overrides[get_provider_registry] = lambda: registry
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)
