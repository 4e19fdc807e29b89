from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.dependencies import get_app_settings
from core.constants import Settings


@pytest.fixture
def healthy_db(mock_conn: AsyncMock) -> AsyncMock:
    mock_conn.fetchval.return_value = 1
    return mock_conn


def test_liveness_check(client: TestClient) -> None:
    response = client.get("/api/v1/health/live")

    assert response.status_code == 200
    assert response.json()["alive"] is True


def test_health_reports_pool_and_configured_providers(client: TestClient, healthy_db: AsyncMock) -> None:
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == {"healthy": True, "pool_size": 10, "pool_free": 8, "pool_used": 2, "error": None}
    assert {p["name"]: p["configured"] for p in data["providers"]} == {
        "anthropic": True,
        "google": True,
        "openai": True,
    }
    assert "test-openai-key" not in response.text


def test_health_without_any_provider_key_is_degraded(app: FastAPI, client: TestClient, healthy_db: AsyncMock) -> None:
    app.dependency_overrides[get_app_settings] = lambda: Settings(
        app_env="test", openai_api_key="", anthropic_api_key=None, google_ai_api_key="  "
    )

    data = client.get("/api/v1/health").json()

    assert data["status"] == "degraded"
    assert not any(p["configured"] for p in data["providers"])


def test_health_with_database_down_is_unhealthy(client: TestClient, mock_conn: AsyncMock) -> None:
    mock_conn.fetchval.side_effect = OSError("connection refused")

    data = client.get("/api/v1/health").json()

    assert data["status"] == "unhealthy"
    assert data["database"]["healthy"] is False


def test_readiness_check_success(client: TestClient, healthy_db: AsyncMock) -> None:
    response = client.get("/api/v1/health/ready")

    assert response.status_code == 200
    assert response.json()["ready"] is True


def test_readiness_check_failure(client: TestClient, mock_db_pool: MagicMock) -> None:
    mock_db_pool.acquire.side_effect = OSError("DB Down")

    response = client.get("/api/v1/health/ready")

    assert response.status_code == 503
    assert response.json() == {"ready": False, "error": "Database unavailable"}
