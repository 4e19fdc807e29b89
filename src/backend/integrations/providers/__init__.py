"""
LLM provider adapters.

``ProviderRegistry`` is the single lookup table from an assistant's
``model_provider`` value to its adapter. Unknown values raise
``UnsupportedProviderError`` at call time, never at startup.
"""

from __future__ import annotations

import httpx

from api.middleware.exception_handlers import UnsupportedProviderError
from core.constants import Settings
from integrations.providers.anthropic_adapter import AnthropicAdapter
from integrations.providers.base import (
    CompletionRequest,
    ProviderAdapter,
    StreamCallbacks,
    VendorRequest,
)
from integrations.providers.google_adapter import GoogleAdapter
from integrations.providers.openai_adapter import OpenAIAdapter, is_reasoning_model
from utils.logger import ChatLogger

ADAPTER_CLASSES: dict[str, type[ProviderAdapter]] = {
    OpenAIAdapter.provider: OpenAIAdapter,
    AnthropicAdapter.provider: AnthropicAdapter,
    GoogleAdapter.provider: GoogleAdapter,
}


class ProviderRegistry:
    """Adapters keyed by provider name."""

    def __init__(self, adapters: dict[str, ProviderAdapter] | None = None):
        self._adapters: dict[str, ProviderAdapter] = dict(adapters or {})

    @classmethod
    def from_settings(
        cls,
        http_client: httpx.AsyncClient,
        settings: Settings,
        logger: ChatLogger | None = None,
    ) -> ProviderRegistry:
        """Build one adapter per known provider, sharing ``http_client``."""
        return cls(
            {
                name: adapter_cls(
                    http_client,
                    api_key=settings.api_key_for(name),
                    base_url=settings.base_url_for(name),
                    logger=logger,
                )
                for name, adapter_cls in ADAPTER_CLASSES.items()
            }
        )

    def register(self, adapter: ProviderAdapter) -> None:
        self._adapters[adapter.provider] = adapter

    def get(self, provider: str) -> ProviderAdapter:
        adapter = self._adapters.get(provider)
        if adapter is None:
            raise UnsupportedProviderError(provider)
        return adapter

    def __contains__(self, provider: object) -> bool:
        return provider in self._adapters


__all__ = [
    "ADAPTER_CLASSES",
    "AnthropicAdapter",
    "CompletionRequest",
    "GoogleAdapter",
    "OpenAIAdapter",
    "ProviderAdapter",
    "ProviderRegistry",
    "StreamCallbacks",
    "VendorRequest",
    "is_reasoning_model",
]
