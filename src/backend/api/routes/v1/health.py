"""
Health check endpoints (v1).

Provides health, readiness, and liveness probes.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from api.dependencies import DB, AppSettings
from core.constants import SUPPORTED_PROVIDERS
from models.schemas.health import (
    DatabaseHealth,
    HealthResponse,
    LivenessResponse,
    ProviderHealth,
    ReadinessResponse,
)
from utils.db_utils import check_pool_health

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Database pool statistics and which LLM vendors have credentials configured.",
)
async def health_check(db: DB, settings: AppSettings) -> HealthResponse:
    """Comprehensive health check endpoint."""
    db_health = await check_pool_health(db)
    providers = [
        ProviderHealth(name=name, configured=settings.api_key_for(name) is not None)
        for name in sorted(SUPPORTED_PROVIDERS)
    ]

    db_healthy = db_health.get("healthy", False)
    if not db_healthy:
        status = "unhealthy"
    elif any(p.configured for p in providers):
        status = "healthy"
    else:
        # Channels work, but no assistant can reply
        status = "degraded"

    return HealthResponse(
        status=status,
        version=settings.app_version,
        database=DatabaseHealth(
            healthy=db_healthy,
            pool_size=db_health.get("pool_size", 0),
            pool_free=db_health.get("free_connections", 0),
            pool_used=db_health.get("used_connections", 0),
        ),
        providers=providers,
    )


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    responses={503: {"description": "Service not ready"}},
)
async def readiness_check(db: DB) -> ReadinessResponse | JSONResponse:
    """Kubernetes-style readiness probe."""
    db_health = await check_pool_health(db)
    if db_health.get("healthy"):
        return ReadinessResponse(ready=True)
    return JSONResponse(status_code=503, content={"ready": False, "error": "Database unavailable"})


@router.get("/health/live", response_model=LivenessResponse, summary="Liveness probe")
async def liveness_check() -> LivenessResponse:
    """Kubernetes-style liveness probe."""
    return LivenessResponse(alive=True)
