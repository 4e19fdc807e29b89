from __future__ import annotations

from typing import Annotated

import asyncpg

from fastapi import Depends, Request

from api.services.chat_service import ChatService
from api.services.completion_service import CompletionService, StreamingCompletionService
from api.services.message_store import MessageStore
from api.services.orchestrator import MentionOrchestrator
from api.services.stream_service import AssistantStreamService
from core.constants import Settings, get_settings
from integrations.providers import ProviderRegistry


def get_app_settings() -> Settings:
    """Provide application settings via dependency injection.

    Usage in routes:
        @router.get("/example")
        async def example(settings: AppSettings):
            return {"debug": settings.debug}
    """
    return get_settings()


async def get_db(request: Request) -> asyncpg.Pool:
    """Get database connection pool from application state."""
    return request.app.state.db_pool


def get_provider_registry(request: Request) -> ProviderRegistry:
    """Get the provider adapters built at startup."""
    return request.app.state.provider_registry


def get_message_store(
    db: Annotated[asyncpg.Pool, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> MessageStore:
    return MessageStore(db, acquire_timeout=settings.db_connection_timeout)


def get_completion_service(
    registry: Annotated[ProviderRegistry, Depends(get_provider_registry)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> CompletionService:
    return CompletionService(
        registry,
        timeout=settings.provider_timeout,
        default_temperature=settings.default_temperature,
        default_max_tokens=settings.default_max_tokens,
    )


def get_streaming_completion_service(
    registry: Annotated[ProviderRegistry, Depends(get_provider_registry)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> StreamingCompletionService:
    return StreamingCompletionService(
        registry,
        timeout=settings.provider_timeout,
        default_temperature=settings.default_temperature,
        default_max_tokens=settings.default_max_tokens,
    )


def get_chat_service(
    store: Annotated[MessageStore, Depends(get_message_store)],
    completion: Annotated[CompletionService, Depends(get_completion_service)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> ChatService:
    """Provide the send/respond service with its mention orchestrator."""
    orchestrator = MentionOrchestrator(
        store,
        completion,
        notify_on_failure=settings.notify_on_assistant_failure,
    )
    return ChatService(store, completion, orchestrator)


def get_stream_service(
    store: Annotated[MessageStore, Depends(get_message_store)],
    streaming: Annotated[StreamingCompletionService, Depends(get_streaming_completion_service)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AssistantStreamService:
    return AssistantStreamService(store, streaming, history_limit=settings.history_limit)


# Type aliases for cleaner route signatures
DB = Annotated[asyncpg.Pool, Depends(get_db)]
Store = Annotated[MessageStore, Depends(get_message_store)]
Chat = Annotated[ChatService, Depends(get_chat_service)]
Streams = Annotated[AssistantStreamService, Depends(get_stream_service)]
Providers = Annotated[ProviderRegistry, Depends(get_provider_registry)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
