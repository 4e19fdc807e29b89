"""PostgreSQL-backed message store.

The only component that touches the ``assistants`` and ``messages`` tables.
Reads are retried on transient connection failures; writes run once. Every
database failure surfaces as ``PersistenceError``.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

import asyncpg

from api.middleware.exception_handlers import DatabaseError, PersistenceError
from models.chat_models import AssistantConfig, ChatMessage, NewMessage
from utils.db_utils import acquire_connection, with_retry
from utils.logger import ChatLogger
from utils.logger import logger as default_logger

_STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, DatabaseError, OSError)

_MESSAGE_COLUMNS = """
    id::text AS id,
    channel_id::text AS channel_id,
    author_id::text AS author_id,
    author_type,
    content,
    mentions,
    counts_toward_limit,
    created_at
"""


def _as_uuid(value: str | UUID) -> UUID | None:
    """Parse an id; malformed ids cannot match any row."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


def row_to_message(row: asyncpg.Record | dict[str, Any]) -> ChatMessage:
    data = dict(row)
    data["mentions"] = list(data.get("mentions") or [])
    data["content"] = data.get("content") or ""
    return ChatMessage(**data)


def row_to_assistant(row: asyncpg.Record | dict[str, Any]) -> AssistantConfig:
    data = dict(row)
    data["name"] = data.get("name") or ""
    data["role"] = data.get("role") or ""
    data["system_prompt"] = data.get("system_prompt") or ""
    return AssistantConfig(**data)


class MessageStore:
    """Reads assistants and channel messages, writes messages."""

    def __init__(
        self,
        pool: asyncpg.Pool,
        acquire_timeout: float | None = None,
        logger: ChatLogger | None = None,
    ):
        self.pool = pool
        self.acquire_timeout = acquire_timeout
        self.logger = logger or default_logger

    # ------------------------------------------------------------------
    # Low-level helpers
    # ------------------------------------------------------------------

    @with_retry(max_attempts=3)
    async def _fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        async with acquire_connection(self.pool, timeout=self.acquire_timeout) as conn:
            return await conn.fetchrow(query, *args)

    @with_retry(max_attempts=3)
    async def _fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        async with acquire_connection(self.pool, timeout=self.acquire_timeout) as conn:
            return list(await conn.fetch(query, *args))

    async def _write_row(self, query: str, *args: Any) -> asyncpg.Record | None:
        async with acquire_connection(self.pool, timeout=self.acquire_timeout) as conn:
            return await conn.fetchrow(query, *args)

    # ------------------------------------------------------------------
    # Assistants
    # ------------------------------------------------------------------

    async def get_assistant(self, assistant_id: str) -> AssistantConfig | None:
        """Load one assistant configuration, or None if it does not exist."""
        key = _as_uuid(assistant_id)
        if key is None:
            return None

        try:
            row = await self._fetchrow(
                """
                SELECT id::text AS id, name, role, system_prompt, model_provider, model_name,
                       temperature, max_tokens, workspace_id::text AS workspace_id
                FROM assistants
                WHERE id = $1
                """,
                key,
            )
        except _STORE_ERRORS as e:
            raise PersistenceError("read assistant", cause=e) from e
        return row_to_assistant(row) if row else None

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def create_message(self, message: NewMessage) -> ChatMessage:
        """Insert a message and return the stored row."""
        channel_id = _as_uuid(message.channel_id)
        author_id = _as_uuid(message.author_id)
        if channel_id is None or author_id is None:
            raise PersistenceError("insert message (malformed channel or author id)")

        try:
            row = await self._write_row(
                f"""
                INSERT INTO messages (channel_id, author_id, author_type, content, mentions, counts_toward_limit)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING {_MESSAGE_COLUMNS}
                """,
                channel_id,
                author_id,
                message.author_type.value,
                message.content,
                list(message.mentions),
                message.counts_toward_limit,
            )
        except _STORE_ERRORS as e:
            raise PersistenceError("insert message", cause=e) from e

        if row is None:
            raise PersistenceError("insert message")
        stored = row_to_message(row)
        self.logger.debug(
            f"Stored {stored.author_type} message {stored.id}",
            channel_id=stored.channel_id,
            message_id=stored.id,
        )
        return stored

    async def update_message_content(self, message_id: str, content: str) -> None:
        """Replace a message's content. Used once per streamed reply."""
        key = _as_uuid(message_id)
        if key is None:
            raise PersistenceError("update message (malformed id)")

        try:
            row = await self._write_row(
                "UPDATE messages SET content = $2 WHERE id = $1 RETURNING id::text",
                key,
                content,
            )
        except _STORE_ERRORS as e:
            raise PersistenceError("update message", cause=e) from e

        if row is None:
            raise PersistenceError("update message (row missing)")

    async def get_recent_messages(self, channel_id: str, limit: int) -> list[ChatMessage]:
        """Most recent ``limit`` messages in a channel, newest first."""
        key = _as_uuid(channel_id)
        if key is None or limit <= 0:
            return []

        try:
            rows = await self._fetch(
                f"""
                SELECT {_MESSAGE_COLUMNS}
                FROM messages
                WHERE channel_id = $1
                ORDER BY created_at DESC
                LIMIT $2
                """,
                key,
                limit,
            )
        except _STORE_ERRORS as e:
            raise PersistenceError("read recent messages", cause=e) from e
        return [row_to_message(row) for row in rows]

    async def list_channel_messages(self, channel_id: str, limit: int = 50) -> list[ChatMessage]:
        """Latest ``limit`` messages in a channel, oldest first (display order)."""
        messages = await self.get_recent_messages(channel_id, limit)
        messages.reverse()
        return messages


__all__ = ["MessageStore", "row_to_assistant", "row_to_message"]
