"""
Integrations Module - External System Integrations
===================================================

Provides integrations with the LLM vendors assistants are configured against.

Modules:
    providers.base: Adapter contract, request model and streaming callback driver
    providers.openai_adapter: OpenAI chat completions (reasoning-model aware)
    providers.anthropic_adapter: Anthropic messages API
    providers.google_adapter: Google Gemini generateContent / streamGenerateContent

Key Components:

Provider Registry (providers/__init__.py):
    Maps ``assistants.model_provider`` to a shared adapter instance:
    - One httpx.AsyncClient shared by all adapters
    - Missing API keys fail per call, not at startup
    - Unknown providers raise UnsupportedProviderError
"""
