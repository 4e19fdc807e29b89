from __future__ import annotations

import pytest

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.middleware.exception_handlers import (
    AssistantNotFoundError,
    PersistenceError,
    ProviderAuthError,
    ProviderHTTPError,
    ProviderResponseShapeError,
    ProviderTimeoutError,
    UnsupportedProviderError,
    describe_error,
    register_exception_handlers,
)
from api.middleware.request_context import RequestContextMiddleware


@pytest.fixture
def client() -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)
    app.add_middleware(RequestContextMiddleware)

    errors = {
        "missing-assistant": AssistantNotFoundError("a1"),
        "no-key": ProviderAuthError("OpenAI"),
        "rate-limited": ProviderHTTPError("Anthropic", 429, "slow down"),
        "vendor-500": ProviderHTTPError("Google AI", 500, "internal"),
        "shape": ProviderResponseShapeError("OpenAI", "missing choices[0].message.content"),
        "timeout": ProviderTimeoutError("OpenAI", 120),
        "unsupported": UnsupportedProviderError("mistral"),
        "db": PersistenceError("insert message"),
        "crash": RuntimeError("unexpected"),
    }

    @app.get("/raise/{name}")
    async def raise_error(name: str) -> None:
        raise errors[name]

    return TestClient(app, raise_server_exceptions=False)


@pytest.mark.parametrize(
    ("name", "status", "code"),
    [
        ("missing-assistant", 404, "RES_3010"),
        ("no-key", 500, "EXT_7010"),
        ("rate-limited", 429, "EXT_7003"),
        ("vendor-500", 502, "EXT_7011"),
        ("shape", 502, "EXT_7012"),
        ("timeout", 504, "EXT_7002"),
        ("unsupported", 500, "EXT_7013"),
        ("db", 500, "DB_8001"),
    ],
)
def test_errors_render_in_one_envelope(client: TestClient, name: str, status: int, code: str) -> None:
    response = client.get(f"/raise/{name}")

    assert response.status_code == status
    error = response.json()["error"]
    assert error["code"] == code
    assert error["path"] == f"/raise/{name}"
    assert error["request_id"].startswith("req_")


def test_request_id_is_echoed(client: TestClient) -> None:
    response = client.get("/raise/missing-assistant", headers={"X-Request-ID": "req_upstream"})

    assert response.headers["X-Request-ID"] == "req_upstream"
    assert response.json()["error"]["request_id"] == "req_upstream"


def test_unexpected_error_hides_details_without_debug(client: TestClient) -> None:
    response = client.get("/raise/crash")

    assert response.status_code == 500
    error = response.json()["error"]
    assert error["code"] == "INT_9999"
    assert error["message"] == "An unexpected error occurred"
    assert "debug" not in error


def test_error_messages() -> None:
    assert ProviderAuthError("OpenAI").message == "OpenAI: API key not configured"
    assert ProviderHTTPError("Anthropic", 401, "bad key").message == "Anthropic: API error (401): bad key"
    assert ProviderTimeoutError("Google AI", 30).message == "Google AI: no complete response within 30s"
    assert UnsupportedProviderError("x").message == "Unsupported AI provider: x"


def test_describe_error() -> None:
    assert describe_error(ProviderAuthError("OpenAI")) == "OpenAI: API key not configured"
    assert describe_error(ValueError("plain")) == "plain"
    assert describe_error(TimeoutError()) == "TimeoutError"
