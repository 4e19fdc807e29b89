"""
Google Generative Language (Gemini) adapter.

Gemini has no system role here: the system prompt is folded into the first
user text. The key travels as the ``key`` query parameter, and the streaming
endpoint returns a JSON array of response objects rather than SSE.
"""

from __future__ import annotations

import json

from collections.abc import AsyncIterator
from typing import Any

import httpx

from core.constants import (
    GOOGLE_GENERATE_ACTION,
    GOOGLE_MODEL_PATH,
    GOOGLE_PROMPT_SEPARATOR,
    GOOGLE_STREAM_ACTION,
)
from integrations.providers.base import CompletionRequest, ProviderAdapter, VendorRequest

# Characters between array elements in the streamed body
_ARRAY_SEPARATORS = "[],\r\n\t "

_decoder = json.JSONDecoder()


def _candidate_text(data: Any) -> str | None:
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) else None


def iter_json_objects(buffer: str) -> tuple[list[Any], str]:
    """Decode every complete JSON value in ``buffer``.

    Returns the decoded values and the unconsumed remainder, which is either
    empty or the start of a value still being received.
    """
    values: list[Any] = []
    pos = 0
    while True:
        while pos < len(buffer) and buffer[pos] in _ARRAY_SEPARATORS:
            pos += 1
        if pos >= len(buffer):
            return values, ""
        try:
            value, end = _decoder.raw_decode(buffer, pos)
        except json.JSONDecodeError:
            return values, buffer[pos:]
        values.append(value)
        pos = end


class GoogleAdapter(ProviderAdapter):
    provider = "google"

    def build_request(self, request: CompletionRequest, stream: bool = False) -> VendorRequest:
        contents: list[dict[str, Any]] = []
        prompt_pending = True
        for turn in request.history:
            text = turn.content
            if prompt_pending and turn.role == "user":
                text = f"{request.system_prompt}{GOOGLE_PROMPT_SEPARATOR}{text}"
                prompt_pending = False
            contents.append({"role": "model" if turn.role == "assistant" else "user", "parts": [{"text": text}]})

        user_text = request.user_message
        if prompt_pending:
            user_text = f"{request.system_prompt}{GOOGLE_PROMPT_SEPARATOR}{user_text}"
        contents.append({"role": "user", "parts": [{"text": user_text}]})

        action = GOOGLE_STREAM_ACTION if stream else GOOGLE_GENERATE_ACTION
        return VendorRequest(
            url=f"{self.base_url}{GOOGLE_MODEL_PATH.format(model=request.model_name, action=action)}",
            headers={"Content-Type": "application/json"},
            params={"key": self._require_api_key()},
            body={
                "contents": contents,
                "generationConfig": {
                    "temperature": request.temperature,
                    "maxOutputTokens": request.max_tokens,
                },
            },
        )

    def parse_completion(self, data: Any) -> str:
        text = _candidate_text(data)
        if text is None:
            raise self.shape_error("missing candidates[0].content.parts[0].text")
        return text

    async def iter_stream_text(self, response: httpx.Response) -> AsyncIterator[str]:
        buffer = ""
        async for chunk in response.aiter_text():
            buffer += chunk
            values, buffer = iter_json_objects(buffer)
            for value in values:
                text = _candidate_text(value)
                if text:
                    yield text

        if buffer.strip():
            self.logger.debug(
                f"Discarding {len(buffer)} undecodable trailing characters from Google stream",
                provider=self.provider,
            )
