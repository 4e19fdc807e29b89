"""
Provider adapter contract shared by every LLM vendor.

An adapter turns one vendor-neutral ``CompletionRequest`` into that vendor's
HTTP call and back into plain text, either as one blocking completion or as
a stream of text tokens. Adapters hold no per-request state, so one instance
serves every concurrent call.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import time

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any

import httpx

from api.middleware.exception_handlers import (
    ProviderAuthError,
    ProviderHTTPError,
    ProviderResponseShapeError,
    ProviderTimeoutError,
)
from core.constants import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    PROVIDERS,
    SSE_DATA_PREFIX,
    VENDOR_ERROR_PREVIEW_LENGTH,
)
from models.chat_models import AssistantConfig, ConversationTurn
from utils.logger import ChatLogger
from utils.logger import logger as default_logger

TokenCallback = Callable[[str], Awaitable[None] | None]
CompleteCallback = Callable[[str], Awaitable[None] | None]
ErrorCallback = Callable[[BaseException], Awaitable[None] | None]


@dataclass(frozen=True)
class CompletionRequest:
    """Everything an adapter needs for one call.

    ``history`` holds prior channel turns, oldest first, and never contains
    the new user message.
    """

    model_name: str
    system_prompt: str
    user_message: str
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    history: tuple[ConversationTurn, ...] = ()

    @classmethod
    def for_assistant(
        cls,
        assistant: AssistantConfig,
        user_message: str,
        history: tuple[ConversationTurn, ...] | list[ConversationTurn] = (),
        system_prompt: str | None = None,
        default_temperature: float = DEFAULT_TEMPERATURE,
        default_max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> CompletionRequest:
        """Build a request from an assistant row, filling NULL sampling fields with defaults."""
        return cls(
            model_name=assistant.model_name,
            system_prompt=assistant.system_prompt if system_prompt is None else system_prompt,
            user_message=user_message,
            temperature=assistant.temperature if assistant.temperature is not None else default_temperature,
            max_tokens=assistant.max_tokens if assistant.max_tokens is not None else default_max_tokens,
            history=tuple(history),
        )


@dataclass(frozen=True)
class VendorRequest:
    """A fully-built vendor HTTP call."""

    url: str
    headers: dict[str, str]
    body: dict[str, Any]
    params: dict[str, str] = field(default_factory=dict)


@dataclass
class StreamCallbacks:
    """Receivers for a streaming call. Sync or async callables are accepted."""

    on_token: TokenCallback
    on_complete: CompleteCallback
    on_error: ErrorCallback


async def invoke_callback(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


def vendor_error_message(response: httpx.Response, body: str | None = None) -> str:
    """Extract the vendor's error message from a non-2xx response.

    Prefers ``error.message`` from a JSON body, then the first characters of the
    raw text, then the HTTP reason phrase.
    """
    text = body if body is not None else response.text
    try:
        data = json.loads(text) if text else None
    except json.JSONDecodeError:
        data = None

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error

    if text and text.strip():
        return text.strip()[:VENDOR_ERROR_PREVIEW_LENGTH]
    return response.reason_phrase or f"HTTP {response.status_code}"


def parse_sse_data(line: str) -> str | None:
    """Return the payload of an SSE ``data:`` line, or None for any other line."""
    if line.startswith(SSE_DATA_PREFIX):
        return line[len(SSE_DATA_PREFIX) :].strip()
    if line.startswith("data:"):
        return line[len("data:") :].strip()
    return None


class ProviderAdapter(ABC):
    """Base class for vendor adapters.

    Subclasses implement the three vendor-specific steps: building the HTTP
    request, reading a blocking response, and reading a streamed response.
    Credential checks, status handling, timeouts and the streaming callback
    contract live here.
    """

    #: Key in ``PROVIDERS``; also the value stored in ``assistants.model_provider``
    provider: str = ""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str | None,
        base_url: str | None = None,
        logger: ChatLogger | None = None,
    ) -> None:
        spec = PROVIDERS[self.provider]
        self.http_client = http_client
        self.api_key = api_key or None
        self.base_url = (base_url or spec.default_base_url).rstrip("/")
        self.display_name = spec.display_name
        self.logger = logger or default_logger

    # ------------------------------------------------------------------
    # Vendor-specific steps
    # ------------------------------------------------------------------

    @abstractmethod
    def build_request(self, request: CompletionRequest, stream: bool = False) -> VendorRequest:
        """Build the vendor URL, headers and JSON body."""

    @abstractmethod
    def parse_completion(self, data: Any) -> str:
        """Extract the reply text from a blocking response body."""

    @abstractmethod
    def iter_stream_text(self, response: httpx.Response) -> AsyncIterator[str]:
        """Yield text chunks from an open streaming response."""

    # ------------------------------------------------------------------
    # Shared plumbing
    # ------------------------------------------------------------------

    def _require_api_key(self) -> str:
        if not self.api_key:
            raise ProviderAuthError(self.display_name)
        return self.api_key

    def shape_error(
        self, message: str = "unexpected response shape", cause: Exception | None = None
    ) -> ProviderResponseShapeError:
        return ProviderResponseShapeError(self.display_name, message, cause=cause)

    async def complete(self, request: CompletionRequest) -> str:
        """Send one blocking request and return the reply text."""
        self._require_api_key()
        vendor_request = self.build_request(request, stream=False)

        response = await self.http_client.post(
            vendor_request.url,
            headers=vendor_request.headers,
            params=vendor_request.params or None,
            json=vendor_request.body,
        )
        if response.is_error:
            raise ProviderHTTPError(self.display_name, response.status_code, vendor_error_message(response))

        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise self.shape_error("response is not JSON", cause=e) from e
        return self.parse_completion(data)

    async def stream_tokens(self, request: CompletionRequest) -> AsyncIterator[str]:
        """Open a streaming request and yield non-empty text chunks in arrival order.

        Leaving the iterator early (including by cancellation) closes the
        underlying vendor connection.
        """
        self._require_api_key()
        vendor_request = self.build_request(request, stream=True)

        async with self.http_client.stream(
            "POST",
            vendor_request.url,
            headers=vendor_request.headers,
            params=vendor_request.params or None,
            json=vendor_request.body,
        ) as response:
            if response.is_error:
                body = (await response.aread()).decode("utf-8", errors="replace")
                raise ProviderHTTPError(
                    self.display_name, response.status_code, vendor_error_message(response, body)
                )

            async for text in self.iter_stream_text(response):
                if text:
                    yield text

    async def stream(
        self,
        request: CompletionRequest,
        callbacks: StreamCallbacks,
        timeout: float | None = None,
    ) -> None:
        """Drive a streaming call through callbacks.

        Every ``on_token`` call happens before the terminal callback, and exactly
        one of ``on_complete`` or ``on_error`` fires. A failure raised by
        ``on_token`` is reported through ``on_error`` like a vendor failure.
        Cancellation propagates without firing either terminal callback.
        """
        parts: list[str] = []
        started = time.monotonic()
        failure: BaseException | None = None

        try:
            async with asyncio.timeout(timeout):
                async with aclosing(self.stream_tokens(request)) as tokens:
                    async for token in tokens:
                        parts.append(token)
                        await invoke_callback(callbacks.on_token, token)
        except TimeoutError:
            failure = ProviderTimeoutError(self.display_name, timeout or 0)
        except Exception as e:
            failure = e

        duration_ms = (time.monotonic() - started) * 1000
        if failure is not None:
            self.logger.warning(
                f"{self.display_name} stream failed after {len(parts)} chunks: {failure}",
                provider=self.provider,
                model=request.model_name,
                ms=int(duration_ms),
            )
            await invoke_callback(callbacks.on_error, failure)
            return

        self.logger.debug(
            f"{self.display_name} stream finished with {len(parts)} chunks",
            provider=self.provider,
            model=request.model_name,
            ms=int(duration_ms),
        )
        await invoke_callback(callbacks.on_complete, "".join(parts))


__all__ = [
    "CompletionRequest",
    "ProviderAdapter",
    "StreamCallbacks",
    "VendorRequest",
    "invoke_callback",
    "parse_sse_data",
    "vendor_error_message",
]
