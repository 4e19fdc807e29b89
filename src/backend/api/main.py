from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from api.middleware.exception_handlers import register_exception_handlers
from api.middleware.request_context import RequestContextMiddleware
from api.routes.v1 import router as v1_router
from core.constants import SUPPORTED_PROVIDERS, get_settings
from integrations.providers import ProviderRegistry
from utils.client_factory import create_http_client
from utils.db_utils import check_pool_health, create_database_pool, graceful_pool_close
from utils.logger import configure_uvicorn_logging, logger

# Settings are loaded via Pydantic Settings with environment-specific file support
# (.env, .env.{APP_ENV}, .env.local)
settings = get_settings()

if settings.debug:
    from core.constants import _get_env_files

    logger.info(f"Env files: {[f.name for f in _get_env_files()]}")
    logger.info(
        f"Settings: app_env={settings.app_env}, db_pool=[{settings.db_pool_min_size},{settings.db_pool_max_size}], "
        f"provider_timeout={settings.provider_timeout}s"
    )

# Configure uvicorn logging at module level to ensure workers use it
configure_uvicorn_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: database pool and the shared vendor HTTP client."""
    app.state.db_pool = await create_database_pool(settings)

    health = await check_pool_health(app.state.db_pool)
    if not health["healthy"]:
        logger.error("Database health check failed during startup")
        raise RuntimeError("Database connection failed")
    logger.info(f"Database pool healthy: {health}")

    # One client for every vendor; connection pooling is per host
    app.state.http_client = create_http_client(
        enable_logging=settings.http_request_logging,
        read_timeout=settings.http_read_timeout,
    )
    app.state.provider_registry = ProviderRegistry.from_settings(app.state.http_client, settings)

    missing = sorted(name for name in SUPPORTED_PROVIDERS if settings.api_key_for(name) is None)
    if missing:
        # Not fatal: assistants on these providers fail per call
        logger.warning(f"No API key configured for: {', '.join(missing)}")

    try:
        yield
    finally:
        logger.info("Initiating graceful shutdown sequence")
        await app.state.http_client.aclose()
        await graceful_pool_close(app.state.db_pool, timeout=settings.shutdown_timeout)


app = FastAPI(
    title="Team Chat Assistant API",
    description="""
## Team Chat Assistant API

Channel messaging where humans mention AI assistants backed by OpenAI,
Anthropic or Google models.

### Features
- **Mention dispatch**: every mentioned assistant replies in mention order
- **Blocking replies**: one stored reply per request
- **Streaming replies**: Server-Sent Events with a single terminal event

### Versioning
API uses URL path versioning: `/api/v1/...`
""",
    version=settings.app_version,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints for monitoring and orchestration"},
        {"name": "Messages", "description": "Channel messages and mention dispatch"},
        {"name": "Assistants", "description": "Blocking and streamed assistant replies"},
    ],
    openapi_url="/api/v1/openapi.json",
    docs_url="/api/v1/docs",
    redoc_url="/api/v1/redoc",
)

# Register global exception handlers for consistent error responses
register_exception_handlers(app)

# Middleware is executed in reverse order of registration
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_methods_list,
    allow_headers=settings.cors_headers_list,
)

# Routes - API v1
app.include_router(v1_router, prefix="/api/v1")

# Prometheus scrape endpoint
app.mount("/metrics", make_asgi_app())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        reload_dirs=["src"],
        log_config=None,
    )
