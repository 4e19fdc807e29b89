"""Live transport for streamed assistant replies.

Turns one streaming completion into Server-Sent Event frames:

    message_created -> token* -> (complete | error)

The placeholder message is created before the vendor call starts and its
content is written once, when the stream ends. Every stream ends with exactly
one terminal frame; a client disconnect cancels the vendor call instead.
"""

from __future__ import annotations

import asyncio
import contextlib

from collections.abc import AsyncIterator, Sequence

from api.middleware.exception_handlers import describe_error
from api.middleware.request_context import RequestContext, create_stream_context
from api.services.completion_service import StreamingCompletionService
from api.services.history import build_contextual_prompt, drop_pending_prompt, messages_to_history
from api.services.message_store import MessageStore
from core.constants import HISTORY_LIMIT
from integrations.providers import StreamCallbacks
from models.chat_models import AssistantConfig, ContextChunk, NewMessage
from models.event_models import (
    TERMINAL_EVENTS,
    CompleteEvent,
    ErrorEvent,
    MessageCreatedEvent,
    StreamEvent,
    TokenEvent,
)
from utils.logger import ChatLogger
from utils.logger import logger as default_logger
from utils.metrics import sse_streams_active, sse_streams_total

STREAM_ENDED_UNEXPECTEDLY = "Stream ended without a result"


class AssistantStreamService:
    """Encodes one assistant's streamed reply as SSE events."""

    def __init__(
        self,
        store: MessageStore,
        streaming_service: StreamingCompletionService,
        history_limit: int = HISTORY_LIMIT,
        logger: ChatLogger | None = None,
    ):
        self.store = store
        self.streaming_service = streaming_service
        self.history_limit = history_limit
        self.logger = logger or default_logger

    async def events(
        self,
        assistant: AssistantConfig,
        channel_id: str,
        user_message: str,
        context: Sequence[ContextChunk] | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Yield the event sequence for one exchange."""
        try:
            recent = await self.store.get_recent_messages(channel_id, self.history_limit)
            placeholder = await self.store.create_message(
                NewMessage.assistant_reply(channel_id, assistant.id, "")
            )
        except Exception as e:
            self.logger.error(f"Could not start stream: {describe_error(e)}", channel_id=channel_id)
            yield ErrorEvent(error=describe_error(e))
            return

        message_id = placeholder.id
        yield MessageCreatedEvent(message_id=message_id)

        queue: asyncio.Queue[StreamEvent | None] = asyncio.Queue()
        parts: list[str] = []

        async def on_token(token: str) -> None:
            parts.append(token)
            await queue.put(TokenEvent(token=token, message_id=message_id))

        async def on_complete(full_text: str) -> None:
            try:
                await self.store.update_message_content(message_id, full_text)
            except Exception as e:
                self.logger.error(f"Final write failed for {message_id}: {describe_error(e)}", message_id=message_id)
                await queue.put(ErrorEvent(error=describe_error(e)))
                return
            await queue.put(CompleteEvent(message_id=message_id, full_text=full_text))

        async def on_error(error: BaseException) -> None:
            self.logger.error(
                f"Stream failed for {message_id}: {describe_error(error)}",
                message_id=message_id,
                error_type=type(error).__name__,
            )
            if parts:
                try:
                    await self.store.update_message_content(message_id, "".join(parts))
                except Exception as e:
                    self.logger.warning(f"Could not save partial reply for {message_id}: {describe_error(e)}")
            await queue.put(ErrorEvent(error=describe_error(error)))

        async def produce() -> None:
            try:
                await self.streaming_service.stream(
                    assistant,
                    user_message,
                    drop_pending_prompt(messages_to_history(recent), user_message),
                    StreamCallbacks(on_token=on_token, on_complete=on_complete, on_error=on_error),
                    system_prompt=build_contextual_prompt(assistant.system_prompt, assistant.name, context),
                )
            except Exception as e:
                self.logger.error(f"Stream producer crashed: {describe_error(e)}", exc_info=True)
                await queue.put(ErrorEvent(error=describe_error(e)))
            finally:
                await queue.put(None)

        producer = asyncio.create_task(produce())
        try:
            while True:
                event = await queue.get()
                if event is None:
                    yield ErrorEvent(error=STREAM_ENDED_UNEXPECTEDLY)
                    return
                yield event
                if event.event in TERMINAL_EVENTS:
                    return
        finally:
            if not producer.done():
                producer.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await producer

    async def frames(
        self,
        assistant: AssistantConfig,
        channel_id: str,
        user_message: str,
        context: Sequence[ContextChunk] | None = None,
        parent_context: RequestContext | None = None,
    ) -> AsyncIterator[str]:
        """Yield encoded SSE frames; used as a StreamingResponse body."""
        create_stream_context(channel_id=channel_id, assistant_id=assistant.id, parent=parent_context)
        sse_streams_active.inc()
        terminal = "disconnected"
        try:
            async for event in self.events(assistant, channel_id, user_message, context):
                if event.event in TERMINAL_EVENTS:
                    terminal = event.event
                yield event.to_sse()
        finally:
            sse_streams_active.dec()
            sse_streams_total.labels(terminal=terminal).inc()
            if terminal == "disconnected":
                self.logger.info("Client disconnected before the stream finished", channel_id=channel_id)


__all__ = ["AssistantStreamService"]
