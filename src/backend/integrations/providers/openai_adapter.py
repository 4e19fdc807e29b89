"""
OpenAI chat completions adapter.
"""

from __future__ import annotations

import json

from collections.abc import AsyncIterator
from typing import Any

import httpx

from core.constants import (
    OPENAI_CHAT_PATH,
    REASONING_MODEL_MARKERS,
    REASONING_MODEL_PREFIXES,
    SSE_DONE_SENTINEL,
)
from integrations.providers.base import (
    CompletionRequest,
    ProviderAdapter,
    VendorRequest,
    parse_sse_data,
)


def is_reasoning_model(model_name: str) -> bool:
    """Reasoning models reject ``temperature`` and take ``max_completion_tokens``."""
    name = model_name.lower()
    return any(marker in name for marker in REASONING_MODEL_MARKERS) or name.startswith(REASONING_MODEL_PREFIXES)


class OpenAIAdapter(ProviderAdapter):
    provider = "openai"

    def build_request(self, request: CompletionRequest, stream: bool = False) -> VendorRequest:
        messages: list[dict[str, str]] = [{"role": "system", "content": request.system_prompt}]
        messages.extend({"role": turn.role, "content": turn.content} for turn in request.history)
        messages.append({"role": "user", "content": request.user_message})

        body: dict[str, Any] = {"model": request.model_name, "messages": messages}
        if is_reasoning_model(request.model_name):
            body["max_completion_tokens"] = request.max_tokens
        else:
            body["temperature"] = request.temperature
            body["max_tokens"] = request.max_tokens
        if stream:
            body["stream"] = True

        return VendorRequest(
            url=f"{self.base_url}{OPENAI_CHAT_PATH}",
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._require_api_key()}",
            },
            body=body,
        )

    def parse_completion(self, data: Any) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise self.shape_error("missing choices[0].message.content", cause=e) from e
        if not isinstance(content, str):
            raise self.shape_error("missing choices[0].message.content")
        return content

    async def iter_stream_text(self, response: httpx.Response) -> AsyncIterator[str]:
        async for line in response.aiter_lines():
            data = parse_sse_data(line.strip())
            if data is None:
                continue
            if data == SSE_DONE_SENTINEL:
                return

            try:
                chunk = json.loads(data)
            except json.JSONDecodeError:
                self.logger.debug("Skipping malformed OpenAI stream line", provider=self.provider)
                continue

            try:
                content = chunk["choices"][0]["delta"].get("content")
            except (KeyError, IndexError, TypeError, AttributeError):
                # Usage and role-only chunks carry no text
                continue
            if isinstance(content, str) and content:
                yield content
