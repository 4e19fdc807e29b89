"""
Health check API schemas.

Response models for health, readiness, and liveness probes.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class DatabaseHealth(BaseModel):
    """Database connection pool health."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "healthy": True,
                "pool_size": 10,
                "pool_free": 8,
                "pool_used": 2,
            }
        }
    )

    healthy: bool = Field(..., description="Database is accessible")
    pool_size: int = Field(default=0, ge=0, description="Total pool size")
    pool_free: int = Field(default=0, ge=0, description="Available connections")
    pool_used: int = Field(default=0, ge=0, description="Active connections")
    error: str | None = Field(default=None, description="Error if unhealthy")


class ProviderHealth(BaseModel):
    """Which vendors have credentials. Keys are never echoed."""

    name: str = Field(..., description="Provider key stored on assistants")
    configured: bool = Field(..., description="An API key is set")


class HealthResponse(BaseModel):
    """Overall service health."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "version": "1.0.0",
                "database": {"healthy": True, "pool_size": 10, "pool_free": 8, "pool_used": 2},
                "providers": [
                    {"name": "openai", "configured": True},
                    {"name": "anthropic", "configured": False},
                    {"name": "google", "configured": True},
                ],
            }
        }
    )

    status: Literal["healthy", "degraded", "unhealthy"] = Field(..., description="Overall status")
    version: str = Field(..., description="Application version")
    database: DatabaseHealth = Field(..., description="Database health")
    providers: list[ProviderHealth] = Field(default_factory=list, description="Vendor credential status")


class ReadinessResponse(BaseModel):
    ready: bool = Field(..., description="Service is ready to accept traffic")
    error: str | None = Field(default=None, description="Error message if not ready")


class LivenessResponse(BaseModel):
    alive: bool = Field(default=True, description="Process is running")
