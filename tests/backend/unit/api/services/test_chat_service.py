from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from api.middleware.exception_handlers import AssistantNotFoundError, PersistenceError, ProviderHTTPError
from api.services.chat_service import ChatService
from api.services.orchestrator import DispatchResult
from models.chat_models import ContextChunk, NewMessage

CHANNEL_ID = "11111111-1111-4111-8111-111111111111"
HUMAN_ID = "22222222-2222-4222-8222-222222222222"
ASSISTANT_ID = "aaaaaaaa-0000-4000-8000-000000000001"


@pytest.fixture
def store(make_message: Callable[..., Any], make_assistant: Callable[..., Any]) -> AsyncMock:
    store = AsyncMock()

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
    store.get_assistant.return_value = make_assistant(id=ASSISTANT_ID, name="Analyst")
    return store


@pytest.fixture
def orchestrator() -> AsyncMock:
    orchestrator = AsyncMock()
    orchestrator.dispatch.return_value = DispatchResult()
    return orchestrator


@pytest.mark.asyncio
async def test_send_with_mentions_counts_toward_limit(store: AsyncMock, orchestrator: AsyncMock) -> None:
    service = ChatService(store, AsyncMock(), orchestrator, logger=MagicMock())

    result = await service.send(CHANNEL_ID, HUMAN_ID, "  hi team  ", [ASSISTANT_ID, ASSISTANT_ID])

    stored = store.create_message.await_args.args[0]
    assert stored.content == "hi team"
    assert stored.author_type.value == "human"
    assert stored.mentions == [ASSISTANT_ID]
    assert stored.counts_toward_limit is True
    orchestrator.dispatch.assert_awaited_once_with(result.message, [ASSISTANT_ID])


@pytest.mark.asyncio
async def test_send_without_mentions_does_not_count(store: AsyncMock, orchestrator: AsyncMock) -> None:
    service = ChatService(store, AsyncMock(), orchestrator, logger=MagicMock())

    result = await service.send(CHANNEL_ID, HUMAN_ID, "just chatting")

    assert result.message.counts_toward_limit is False
    assert result.dispatch.replies == []


@pytest.mark.asyncio
async def test_send_fails_only_when_human_message_cannot_be_stored(
    store: AsyncMock, orchestrator: AsyncMock
) -> None:
    store.create_message.side_effect = PersistenceError("insert message")
    service = ChatService(store, AsyncMock(), orchestrator, logger=MagicMock())

    with pytest.raises(PersistenceError):
        await service.send(CHANNEL_ID, HUMAN_ID, "hello", [ASSISTANT_ID])

    orchestrator.dispatch.assert_not_called()


@pytest.mark.asyncio
async def test_respond_stores_reply_with_context_prompt(store: AsyncMock, orchestrator: AsyncMock) -> None:
    completion = AsyncMock()
    completion.complete.return_value = "Revenue is up."
    service = ChatService(store, completion, orchestrator, logger=MagicMock())

    reply = await service.respond(ASSISTANT_ID, CHANNEL_ID, "How is revenue?", [ContextChunk(content="+12%")])

    assert reply.content == "Revenue is up."
    assert reply.author_id == ASSISTANT_ID
    assert reply.counts_toward_limit is False
    prompt = completion.complete.await_args.kwargs["system_prompt"]
    assert prompt.startswith("# YOU ARE: Analyst")
    assert "+12%" in prompt


@pytest.mark.asyncio
async def test_respond_unknown_assistant(store: AsyncMock, orchestrator: AsyncMock) -> None:
    store.get_assistant.return_value = None
    service = ChatService(store, AsyncMock(), orchestrator, logger=MagicMock())

    with pytest.raises(AssistantNotFoundError):
        await service.respond(ASSISTANT_ID, CHANNEL_ID, "hello")


@pytest.mark.asyncio
async def test_respond_propagates_provider_errors(store: AsyncMock, orchestrator: AsyncMock) -> None:
    completion = AsyncMock()
    completion.complete.side_effect = ProviderHTTPError("OpenAI", 429, "slow down")
    service = ChatService(store, completion, orchestrator, logger=MagicMock())

    with pytest.raises(ProviderHTTPError):
        await service.respond(ASSISTANT_ID, CHANNEL_ID, "hello")

    store.create_message.assert_not_called()
