"""
HTTP client factory for vendor LLM calls.
Centralizes httpx.AsyncClient creation with consistent timeouts.
"""

from __future__ import annotations

import httpx

from utils.http_logger import create_logging_client

# Reasoning models (o1, o3, gpt-5.1, *thinking*) can pause 30+ seconds
# before the first token, so reads get a generous timeout
DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_READ_TIMEOUT = 600.0
DEFAULT_WRITE_TIMEOUT = 30.0
DEFAULT_POOL_TIMEOUT = 30.0


def create_http_client(
    enable_logging: bool = False,
    read_timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create the shared client used by every provider adapter.

    Args:
        enable_logging: Enable HTTP request/response logging
        read_timeout: Per-chunk read timeout in seconds (default: 600s)
        transport: Optional transport override (tests pass httpx.MockTransport)

    Returns:
        Configured httpx.AsyncClient
    """
    effective_read_timeout = read_timeout if read_timeout is not None else DEFAULT_READ_TIMEOUT
    timeout = httpx.Timeout(
        connect=DEFAULT_CONNECT_TIMEOUT,
        read=effective_read_timeout,
        write=DEFAULT_WRITE_TIMEOUT,
        pool=DEFAULT_POOL_TIMEOUT,
    )

    if enable_logging and transport is None:
        return create_logging_client(enabled=True, timeout=timeout)

    return httpx.AsyncClient(timeout=timeout, transport=transport)
