"""Completion services: provider dispatch for blocking and streaming replies.

Both services pick the adapter strictly by ``assistant.model_provider``
through the provider registry, apply the configured per-call timeout, and
record provider metrics. Adapter errors propagate unchanged.
"""

from __future__ import annotations

import asyncio
import time

from collections.abc import Sequence

from api.middleware.exception_handlers import ProviderTimeoutError
from api.services.history import trim_history
from core.constants import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
from integrations.providers import CompletionRequest, ProviderAdapter, ProviderRegistry, StreamCallbacks
from integrations.providers.base import invoke_callback
from models.chat_models import AssistantConfig, ConversationTurn
from utils.logger import ChatLogger
from utils.logger import logger as default_logger
from utils.metrics import provider_request_duration_seconds, provider_requests_total


def _outcome(error: BaseException | None) -> str:
    if error is None:
        return "success"
    if isinstance(error, ProviderTimeoutError):
        return "timeout"
    return "error"


class _DispatchingService:
    def __init__(
        self,
        registry: ProviderRegistry,
        timeout: float | None = None,
        default_temperature: float = DEFAULT_TEMPERATURE,
        default_max_tokens: int = DEFAULT_MAX_TOKENS,
        logger: ChatLogger | None = None,
    ):
        self.registry = registry
        self.timeout = timeout
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens
        self.logger = logger or default_logger

    def _build_request(
        self,
        assistant: AssistantConfig,
        user_message: str,
        history: Sequence[ConversationTurn],
        system_prompt: str | None,
    ) -> CompletionRequest:
        return CompletionRequest.for_assistant(
            assistant,
            user_message,
            history=tuple(history),
            system_prompt=system_prompt,
            default_temperature=self.default_temperature,
            default_max_tokens=self.default_max_tokens,
        )

    def _record(self, adapter: ProviderAdapter, mode: str, started: float, error: BaseException | None) -> None:
        provider_requests_total.labels(provider=adapter.provider, mode=mode, outcome=_outcome(error)).inc()
        provider_request_duration_seconds.labels(provider=adapter.provider, mode=mode).observe(
            time.monotonic() - started
        )


class CompletionService(_DispatchingService):
    """Blocking reply for one assistant and one user message."""

    async def complete(
        self,
        assistant: AssistantConfig,
        user_message: str,
        history: Sequence[ConversationTurn] = (),
        system_prompt: str | None = None,
    ) -> str:
        """Return the assistant's full reply.

        Raises:
            UnsupportedProviderError: Unknown ``model_provider``
            ProviderAuthError, ProviderHTTPError, ProviderResponseShapeError: From the adapter
            ProviderTimeoutError: No reply within the configured timeout
        """
        adapter = self.registry.get(assistant.model_provider)
        request = self._build_request(assistant, user_message, history, system_prompt)

        started = time.monotonic()
        error: BaseException | None = None
        try:
            async with asyncio.timeout(self.timeout):
                reply = await adapter.complete(request)
        except TimeoutError as e:
            error = ProviderTimeoutError(adapter.display_name, self.timeout or 0)
            raise error from e
        except BaseException as e:
            error = e
            raise
        finally:
            self._record(adapter, "complete", started, error)

        self.logger.log_completion(
            provider=adapter.provider,
            model=assistant.model_name,
            user_input=user_message,
            response=reply,
            duration_ms=(time.monotonic() - started) * 1000,
            assistant_id=assistant.id,
        )
        return reply


class StreamingCompletionService(_DispatchingService):
    """Live token stream for one assistant, user message and history window."""

    async def stream(
        self,
        assistant: AssistantConfig,
        user_message: str,
        history: Sequence[ConversationTurn],
        callbacks: StreamCallbacks,
        system_prompt: str | None = None,
    ) -> None:
        """Stream a reply through ``callbacks``.

        Exactly one of ``on_complete``/``on_error`` fires, after every
        ``on_token``. Dispatch failures (unknown provider) are reported through
        ``on_error`` as well.
        """
        try:
            adapter = self.registry.get(assistant.model_provider)
        except Exception as e:
            await invoke_callback(callbacks.on_error, e)
            return

        prompt = assistant.system_prompt if system_prompt is None else system_prompt
        trimmed = trim_history(history, prompt, adapter.provider, model=assistant.model_name, logger=self.logger)
        request = self._build_request(assistant, user_message, trimmed, prompt)

        started = time.monotonic()
        chunks = 0

        async def on_token(token: str) -> None:
            nonlocal chunks
            chunks += 1
            await invoke_callback(callbacks.on_token, token)

        async def on_complete(full_text: str) -> None:
            self._record(adapter, "stream", started, None)
            self.logger.log_completion(
                provider=adapter.provider,
                model=assistant.model_name,
                user_input=user_message,
                response=full_text,
                streamed=True,
                chunks=chunks,
                duration_ms=(time.monotonic() - started) * 1000,
                assistant_id=assistant.id,
            )
            await invoke_callback(callbacks.on_complete, full_text)

        async def on_error(error: BaseException) -> None:
            self._record(adapter, "stream", started, error)
            await invoke_callback(callbacks.on_error, error)

        await adapter.stream(
            request,
            StreamCallbacks(on_token=on_token, on_complete=on_complete, on_error=on_error),
            timeout=self.timeout,
        )


__all__ = ["CompletionService", "StreamingCompletionService"]
