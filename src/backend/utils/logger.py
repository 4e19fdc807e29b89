"""
Logging setup for the assistant pipeline using Python's standard logging
with JSON formatting for structured logs.

Log destinations:
- Console (stderr): Human-readable format for debugging
- logs/pipeline.jsonl: JSON format for assistant reply records
- logs/errors.jsonl: JSON format for error tracking
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import re
import sys
import uuid

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, cast

from pythonjsonlogger import json as jsonlogger

from api.middleware.request_context import get_request_context
from core.constants import (
    COMPONENT_ID_LENGTH,
    LOG_BACKUP_COUNT_ERRORS,
    LOG_BACKUP_COUNT_PIPELINE,
    LOG_MAX_SIZE,
    LOG_PREVIEW_LENGTH,
    PROJECT_ROOT,
    get_settings,
)

# PII Redaction patterns
REDACTION_PATTERNS = [
    (r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b", "[EMAIL]"),
    (r"\b(?:\d{4}[- ]?){3}\d{4}\b", "[CARD]"),
    (r"\b(sk-|sk-ant-|AIza|api[-_]?key[-_]?)[A-Za-z0-9_-]{20,}\b", "[API_KEY]"),
    (r"\b(password|secret|token)\s*[:=]\s*\S+", "[REDACTED]"),
]


@dataclass
class CompletionRecord:
    """Structured representation of one assistant reply for logging."""

    provider: str
    model: str
    user_input: str
    response: str
    streamed: bool = False
    chunks: int | None = None
    duration_ms: float | None = None
    assistant_id: str | None = None
    message_id: str | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())


class PipelineFilter(logging.Filter):
    """Allow INFO and above into the pipeline log"""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.INFO


class ErrorFilter(logging.Filter):
    """Filter to only allow ERROR and CRITICAL logs"""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


class ColoredConsoleFormatter(logging.Formatter):
    """
    Custom formatter that adds colors to log levels and standardizes format.
    Format: HH:MM:SS [LEVEL] logger_name - message
    """

    GREY = "\x1b[38;20m"
    GREEN = "\x1b[32;20m"
    YELLOW = "\x1b[33;20m"
    RED = "\x1b[31;20m"
    BOLD_RED = "\x1b[31;1m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        level_fmt = f"[{record.levelname}]"
        color = self.LEVEL_COLORS.get(record.levelno)
        if color:
            level_fmt = f"{color}{level_fmt}{self.RESET}"

        record.asctime = self.formatTime(record, "%H:%M:%S")

        # uvicorn access args: (client_addr, method, full_path, http_version, status_code)
        if record.name == "uvicorn.access" and record.args and len(record.args) == 5:
            client_addr, method, full_path, http_version, status_code = record.args

            status_code_num = int(cast(Any, status_code))
            if status_code_num < 400:
                status_code_fmt = f"{self.GREEN}{status_code}{self.RESET}"
            elif status_code_num < 500:
                status_code_fmt = f"{self.YELLOW}{status_code}{self.RESET}"
            else:
                status_code_fmt = f"{self.RED}{status_code}{self.RESET}"

            method_fmt = f"\x1b[1m{method}\x1b[0m"
            message = f'{client_addr} - "{method_fmt} {full_path} HTTP/{http_version}" {status_code_fmt}'
            return f"{record.asctime} {level_fmt} {record.name} - {message}"

        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"{record.asctime} {level_fmt} {record.name} - {message}"


def configure_uvicorn_logging() -> None:
    """Route uvicorn access and error logs through the colored console formatter."""
    formatter = ColoredConsoleFormatter()

    main_logger = logging.getLogger("uvicorn")
    main_logger.handlers = []
    main_logger.setLevel(logging.INFO)

    for name in ("uvicorn.access", "uvicorn.error"):
        child = logging.getLogger(name)
        child.handlers = []
        child.setLevel(logging.INFO)
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        child.addHandler(handler)
        child.propagate = False


def setup_logging(name: str = "teamchat", debug: bool | None = None) -> logging.Logger:
    """
    Set up logging with console and rotating JSON file handlers.

    Args:
        name: Logger name
        debug: Enable debug logging (overrides DEBUG env var)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)  # Capture all, filter at handler level
    logger.handlers = []

    if debug is None:
        debug = os.getenv("DEBUG", "false").lower() in ("true", "1", "yes")

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())
    logger.addHandler(console_handler)

    log_dir = PROJECT_ROOT / "logs"
    log_dir.mkdir(exist_ok=True)

    pipeline_handler = logging.handlers.RotatingFileHandler(
        log_dir / "pipeline.jsonl",
        maxBytes=LOG_MAX_SIZE,
        backupCount=LOG_BACKUP_COUNT_PIPELINE,
        encoding="utf-8",
    )
    pipeline_handler.setLevel(logging.INFO)
    pipeline_handler.addFilter(PipelineFilter())
    pipeline_handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(timestamp)s %(levelname)s %(message)s %(component_id)s %(provider)s %(model)s %(ms)s",
            timestamp=True,
        )
    )
    logger.addHandler(pipeline_handler)

    error_handler = logging.handlers.RotatingFileHandler(
        log_dir / "errors.jsonl",
        maxBytes=LOG_MAX_SIZE,
        backupCount=LOG_BACKUP_COUNT_ERRORS,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.addFilter(ErrorFilter())
    error_handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(timestamp)s %(levelname)s %(name)s %(message)s",
            timestamp=True,
        )
    )
    logger.addHandler(error_handler)

    return logger


class ChatLogger:
    """
    High-level logging interface for the pipeline.
    Wraps standard Python logging with convenience methods; keyword
    arguments become structured fields merged with the request context.
    """

    def __init__(self, name: str = "teamchat"):
        self.logger = setup_logging(name)
        self.component_id = str(uuid.uuid4())[:COMPONENT_ID_LENGTH]

    def _enrich_context(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        """Enrich log arguments with request context and component ID."""
        kwargs.setdefault("component_id", self.component_id)
        if ctx := get_request_context():
            for key, value in ctx.to_log_context().items():
                kwargs.setdefault(key, value)
        return kwargs

    def debug(self, message: str, **kwargs: Any) -> None:
        self.logger.debug(message, extra=self._enrich_context(kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self.logger.info(message, extra=self._enrich_context(kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self.logger.warning(message, extra=self._enrich_context(kwargs))

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        """Error level logging with optional exception info"""
        self.logger.error(message, extra=self._enrich_context(kwargs), exc_info=exc_info)

    def _should_log_content(self) -> bool:
        """Check if content logging is enabled via settings."""
        try:
            return bool(get_settings().enable_content_logging)
        except ValueError:
            # Settings invalid or not loaded yet
            return False

    def _redact_content(self, text: str) -> str:
        """Redact PII from text using defined patterns."""
        if not text:
            return text

        redacted = text
        for pattern, replacement in REDACTION_PATTERNS:
            redacted = re.sub(pattern, replacement, redacted)
        return redacted

    def _preview(self, text: str) -> str:
        preview = self._redact_content(text[:LOG_PREVIEW_LENGTH].replace("\n", " "))
        if len(text) > LOG_PREVIEW_LENGTH:
            preview += "..."
        return preview

    def log_completion(
        self,
        provider: str,
        model: str,
        user_input: str,
        response: str,
        streamed: bool = False,
        chunks: int | None = None,
        duration_ms: float | None = None,
        assistant_id: str | None = None,
        message_id: str | None = None,
    ) -> None:
        """Log one finished assistant reply, hiding content unless enabled."""
        record = CompletionRecord(
            provider=provider,
            model=model,
            user_input=user_input,
            response=response,
            streamed=streamed,
            chunks=chunks,
            duration_ms=duration_ms,
            assistant_id=assistant_id,
            message_id=message_id,
        )

        should_log_content = self._should_log_content()
        if should_log_content:
            user_preview = self._preview(record.user_input)
            response_preview = self._preview(record.response)
        else:
            user_preview = "[HIDDEN]"
            response_preview = "[HIDDEN]"

        msg_parts = [f"{record.provider}/{record.model}: {user_preview} → {response_preview}"]
        if record.streamed:
            msg_parts.append(f"[stream {record.chunks or 0} chunks]")
        if record.duration_ms:
            msg_parts.append(f"[{record.duration_ms:.0f}ms]")

        extra_data: dict[str, Any] = {
            "completion": True,
            "timestamp": record.timestamp,
            "provider": record.provider,
            "model": record.model,
            "streamed": record.streamed,
            "chars_input": len(record.user_input),
            "chars_response": len(record.response),
            "content_logging": should_log_content,
        }
        if record.chunks is not None:
            extra_data["chunks"] = record.chunks
        if record.duration_ms is not None:
            extra_data["ms"] = int(record.duration_ms)
        if record.assistant_id:
            extra_data["assistant_id"] = record.assistant_id
        if record.message_id:
            extra_data["message_id"] = record.message_id

        self.logger.info(" ".join(msg_parts), extra=self._enrich_context(extra_data))


# Global logger instance
logger = ChatLogger()
