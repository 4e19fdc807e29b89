"""
Team Chat Assistants - Multi-provider assistant replies for team channels
=========================================================================

FastAPI backend where humans mention AI assistants backed by OpenAI,
Anthropic or Google models.

Key Features:
    - **Mention Dispatch**: every mentioned assistant replies, in mention order
    - **Streaming Replies**: Server-Sent Events with one terminal event per exchange
    - **Provider Adapters**: raw httpx calls normalized behind one adapter contract
    - **Token-Aware History**: recent channel turns trimmed to a per-provider budget
    - **Enterprise Logging**: Structured JSON logs with rotation and request correlation

Modules:
    api: FastAPI routes, services and middleware
    core: Settings and constants
    models: Pydantic domain, event, error and schema models
    utils: Logging, HTTP client, token counting, database pool, metrics
    integrations: LLM vendor adapters and the provider registry
"""
