"""
Anthropic messages adapter.

The system prompt travels in the top-level ``system`` field; streamed text
arrives only in ``content_block_delta`` events.
"""

from __future__ import annotations

import json

from collections.abc import AsyncIterator
from typing import Any

import httpx

from api.middleware.exception_handlers import ProviderHTTPError
from core.constants import ANTHROPIC_MESSAGES_PATH, ANTHROPIC_TEXT_DELTA_EVENT, ANTHROPIC_VERSION
from integrations.providers.base import (
    CompletionRequest,
    ProviderAdapter,
    VendorRequest,
    parse_sse_data,
)

# In-stream failure event (overloaded_error and friends), sent after a 200 status
ANTHROPIC_ERROR_EVENT = "error"


class AnthropicAdapter(ProviderAdapter):
    provider = "anthropic"

    def build_request(self, request: CompletionRequest, stream: bool = False) -> VendorRequest:
        # The messages array must open with a user turn
        turns = list(request.history)
        while turns and turns[0].role != "user":
            turns.pop(0)

        messages = [{"role": turn.role, "content": turn.content} for turn in turns]
        messages.append({"role": "user", "content": request.user_message})

        body: dict[str, Any] = {
            "model": request.model_name,
            "system": request.system_prompt,
            "messages": messages,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        if stream:
            body["stream"] = True

        return VendorRequest(
            url=f"{self.base_url}{ANTHROPIC_MESSAGES_PATH}",
            headers={
                "Content-Type": "application/json",
                "x-api-key": self._require_api_key(),
                "anthropic-version": ANTHROPIC_VERSION,
            },
            body=body,
        )

    def parse_completion(self, data: Any) -> str:
        try:
            text = data["content"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise self.shape_error("missing content[0].text", cause=e) from e
        if not isinstance(text, str):
            raise self.shape_error("missing content[0].text")
        return text

    async def iter_stream_text(self, response: httpx.Response) -> AsyncIterator[str]:
        # "event:" lines repeat the type already present in each data payload
        async for line in response.aiter_lines():
            data = parse_sse_data(line.strip())
            if not data:
                continue

            try:
                event = json.loads(data)
            except json.JSONDecodeError:
                self.logger.debug("Skipping malformed Anthropic stream line", provider=self.provider)
                continue
            if not isinstance(event, dict):
                continue

            event_type = event.get("type")
            if event_type == ANTHROPIC_ERROR_EVENT:
                error = event.get("error") or {}
                message = error.get("message") if isinstance(error, dict) else str(error)
                raise ProviderHTTPError(self.display_name, response.status_code, message or "stream error")
            if event_type != ANTHROPIC_TEXT_DELTA_EVENT:
                continue

            delta = event.get("delta")
            text = delta.get("text") if isinstance(delta, dict) else None
            if isinstance(text, str) and text:
                yield text
