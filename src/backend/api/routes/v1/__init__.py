"""
API v1 Router - Aggregates all v1 endpoints.

Usage in main.py:
    from api.routes.v1 import router as v1_router
    app.include_router(v1_router, prefix="/api/v1")
"""

from fastapi import APIRouter

from api.routes.v1 import ai, health, messages

# Create the v1 API router
router = APIRouter()

# Health endpoints
router.include_router(
    health.router,
    tags=["Health"],
)

# Channel messages and mention dispatch
router.include_router(
    messages.router,
    tags=["Messages"],
)

# Assistant replies (blocking and streamed)
router.include_router(
    ai.router,
    tags=["Assistants"],
)

__all__ = ["router"]
