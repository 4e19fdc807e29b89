"""Mention dispatch: one blocking assistant reply per mentioned assistant.

Mentions are handled strictly one after another so at most one vendor call
is in flight per human message, and replies land in mention order. A failing
assistant never affects the others or the human message that mentioned it.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from api.middleware.exception_handlers import AssistantNotFoundError, describe_error
from api.services.completion_service import CompletionService
from api.services.message_store import MessageStore
from models.chat_models import AssistantConfig, ChatMessage, NewMessage
from utils.logger import ChatLogger
from utils.logger import logger as default_logger
from utils.metrics import assistant_replies_total

FAILURE_NOTICE_TEMPLATE = "{name} did not respond."


@dataclass(frozen=True)
class AssistantFailure:
    assistant_id: str
    error: str

    def to_api(self) -> dict[str, Any]:
        return {"assistant_id": self.assistant_id, "error": self.error}


@dataclass
class DispatchResult:
    """Outcome of one dispatch run, in mention order."""

    replies: list[ChatMessage] = field(default_factory=list)
    failures: list[AssistantFailure] = field(default_factory=list)
    notices: list[ChatMessage] = field(default_factory=list)


def dedupe_mentions(mentions: Sequence[str], logger: ChatLogger | None = None) -> list[str]:
    """Drop repeated assistant ids, keeping first-mention order."""
    seen: set[str] = set()
    unique: list[str] = []
    for assistant_id in mentions:
        if assistant_id in seen:
            continue
        seen.add(assistant_id)
        unique.append(assistant_id)

    dropped = len(mentions) - len(unique)
    if dropped:
        (logger or default_logger).warning(f"Ignoring {dropped} duplicate mention(s)", mentions=list(mentions))
        assistant_replies_total.labels(outcome="duplicate_skipped").inc(dropped)
    return unique


class MentionOrchestrator:
    """Runs the lookup, complete, persist round trip for each mentioned assistant."""

    def __init__(
        self,
        store: MessageStore,
        completion_service: CompletionService,
        notify_on_failure: bool = False,
        logger: ChatLogger | None = None,
    ):
        self.store = store
        self.completion_service = completion_service
        self.notify_on_failure = notify_on_failure
        self.logger = logger or default_logger

    async def _reply(self, message: ChatMessage, assistant: AssistantConfig) -> ChatMessage:
        text = await self.completion_service.complete(assistant, message.content)
        return await self.store.create_message(NewMessage.assistant_reply(message.channel_id, assistant.id, text))

    async def dispatch(self, message: ChatMessage, mentions: Sequence[str] | None = None) -> DispatchResult:
        """Reply to ``message`` once per distinct mentioned assistant.

        Args:
            message: The persisted human message
            mentions: Assistant ids to dispatch to (defaults to ``message.mentions``)

        Returns:
            DispatchResult with created replies and per-assistant failures
        """
        result = DispatchResult()
        assistant_ids = dedupe_mentions(message.mentions if mentions is None else mentions, self.logger)

        for assistant_id in assistant_ids:
            assistant: AssistantConfig | None = None
            try:
                assistant = await self.store.get_assistant(assistant_id)
                if assistant is None:
                    raise AssistantNotFoundError(assistant_id)
                reply = await self._reply(message, assistant)
            except Exception as e:
                error = describe_error(e)
                self.logger.error(
                    f"Assistant {assistant_id} did not reply: {error}",
                    channel_id=message.channel_id,
                    assistant_id=assistant_id,
                    error_type=type(e).__name__,
                )
                assistant_replies_total.labels(outcome="failed").inc()
                result.failures.append(AssistantFailure(assistant_id=assistant_id, error=error))
                if self.notify_on_failure and assistant is not None:
                    await self._post_failure_notice(message, assistant, result)
                continue

            assistant_replies_total.labels(outcome="created").inc()
            result.replies.append(reply)

        if assistant_ids:
            self.logger.info(
                f"Dispatched {len(assistant_ids)} mention(s): "
                f"{len(result.replies)} replied, {len(result.failures)} failed",
                channel_id=message.channel_id,
            )
        return result

    async def _post_failure_notice(
        self, message: ChatMessage, assistant: AssistantConfig, result: DispatchResult
    ) -> None:
        notice = FAILURE_NOTICE_TEMPLATE.format(name=assistant.name or "Assistant")
        try:
            created = await self.store.create_message(
                NewMessage.assistant_reply(message.channel_id, assistant.id, notice)
            )
        except Exception as e:
            self.logger.warning(f"Could not post failure notice for {assistant.id}: {describe_error(e)}")
            return
        result.notices.append(created)


__all__ = ["AssistantFailure", "DispatchResult", "MentionOrchestrator", "dedupe_mentions"]
