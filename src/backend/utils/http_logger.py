"""
HTTP request/response logging for debugging vendor API integrations.

Captures request payloads and response status using httpx event hooks,
with credentials removed from headers and query strings.
"""

from __future__ import annotations

import json

from typing import Any

import httpx

from utils.logger import logger

SENSITIVE_HEADERS = frozenset({"authorization", "api-key", "x-api-key", "x-goog-api-key"})
SENSITIVE_QUERY_PARAMS = frozenset({"key"})


def mask_secret(value: str) -> str:
    """Show last 4 chars only."""
    return f"***{value[-4:]}" if len(value) > 4 else "***"


def sanitize_url(url: httpx.URL) -> str:
    """Mask credential query parameters (Google passes its key as ``?key=``)."""
    params = [
        (name, mask_secret(value) if name.lower() in SENSITIVE_QUERY_PARAMS else value)
        for name, value in url.params.multi_items()
    ]
    return str(url.copy_with(params=params)) if params else str(url)


def sanitize_headers(headers: httpx.Headers | dict[str, str]) -> dict[str, str]:
    """Remove sensitive data from headers."""
    return {key: mask_secret(value) if key.lower() in SENSITIVE_HEADERS else value for key, value in headers.items()}


class HTTPLogger:
    """Logs vendor HTTP requests and responses."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._request_data: dict[int, dict[str, Any]] = {}

    async def log_request(self, request: httpx.Request) -> None:
        if not self.enabled:
            return

        try:
            body_str = request.content.decode("utf-8") if request.content else ""
            body_json = json.loads(body_str) if body_str else {}
        except (UnicodeDecodeError, json.JSONDecodeError, httpx.RequestNotRead):
            body_json = {"_note": "body not captured"}

        url = sanitize_url(request.url)
        self._request_data[id(request)] = {"method": request.method, "url": url}

        logger.info(
            f"HTTP Request: {request.method} {url}",
            http_request=True,
            headers=sanitize_headers(request.headers),
            payload=body_json,
        )

        if body_json:
            logger.debug(f"Request Payload:\n{json.dumps(body_json, indent=2)}")

    async def log_response(self, response: httpx.Response) -> None:
        if not self.enabled:
            return

        request_data = self._request_data.pop(id(response.request), {})
        # Vendor streams are consumed by the adapter; never read the body here
        logger.info(
            f"HTTP Response: {response.status_code} "
            f"{request_data.get('method', 'UNKNOWN')} {request_data.get('url', 'UNKNOWN')}",
            http_response=True,
            status_code=response.status_code,
            content_type=response.headers.get("content-type", ""),
        )


def create_logging_client(
    enabled: bool = True,
    timeout: httpx.Timeout | None = None,
) -> httpx.AsyncClient:
    """Create an httpx client with request/response logging hooks."""
    http_logger = HTTPLogger(enabled=enabled)

    event_hooks: dict[str, list[Any]] = {
        "request": [http_logger.log_request],
        "response": [http_logger.log_response],
    }

    return httpx.AsyncClient(event_hooks=event_hooks, timeout=timeout)
