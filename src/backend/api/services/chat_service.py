"""Channel send flow and blocking assistant replies."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from api.middleware.exception_handlers import AssistantNotFoundError
from api.services.completion_service import CompletionService
from api.services.history import build_contextual_prompt
from api.services.message_store import MessageStore
from api.services.orchestrator import DispatchResult, MentionOrchestrator, dedupe_mentions
from models.chat_models import AssistantConfig, AuthorType, ChatMessage, ContextChunk, NewMessage
from utils.logger import ChatLogger
from utils.logger import logger as default_logger


@dataclass
class SendResult:
    message: ChatMessage
    dispatch: DispatchResult


class ChatService:
    """Persists human messages and asks mentioned assistants to reply."""

    def __init__(
        self,
        store: MessageStore,
        completion_service: CompletionService,
        orchestrator: MentionOrchestrator,
        logger: ChatLogger | None = None,
    ):
        self.store = store
        self.completion_service = completion_service
        self.orchestrator = orchestrator
        self.logger = logger or default_logger

    async def send(self, channel_id: str, author_id: str, content: str, mentions: Sequence[str] = ()) -> SendResult:
        """Store a human message, then dispatch its mentions.

        Only the human message write can fail this call; assistant failures
        are reported in ``SendResult.dispatch.failures``.
        """
        unique_mentions = dedupe_mentions(list(mentions), self.logger)
        message = await self.store.create_message(
            NewMessage(
                channel_id=channel_id,
                author_id=author_id,
                author_type=AuthorType.HUMAN,
                content=content.strip(),
                mentions=unique_mentions,
                counts_toward_limit=len(unique_mentions) > 0,
            )
        )
        self.logger.info(
            f"Stored human message {message.id} with {len(unique_mentions)} mention(s)",
            channel_id=channel_id,
            message_id=message.id,
        )

        dispatch = await self.orchestrator.dispatch(message, unique_mentions)
        return SendResult(message=message, dispatch=dispatch)

    async def get_assistant(self, assistant_id: str) -> AssistantConfig:
        assistant = await self.store.get_assistant(assistant_id)
        if assistant is None:
            raise AssistantNotFoundError(assistant_id)
        return assistant

    async def respond(
        self,
        assistant_id: str,
        channel_id: str,
        user_message: str,
        context: Sequence[ContextChunk] | None = None,
    ) -> ChatMessage:
        """Produce and store one blocking assistant reply. Errors propagate to the caller."""
        assistant = await self.get_assistant(assistant_id)
        system_prompt = build_contextual_prompt(assistant.system_prompt, assistant.name, context)
        text = await self.completion_service.complete(assistant, user_message, system_prompt=system_prompt)
        return await self.store.create_message(NewMessage.assistant_reply(channel_id, assistant.id, text))


__all__ = ["ChatService", "SendResult"]
