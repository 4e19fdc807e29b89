"""
Server-sent event models for the live assistant stream.

Each event renders to one SSE frame: ``event: <name>\\ndata: <json>\\n\\n``.
"""

from __future__ import annotations

import json

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from core.constants import (
    SSE_EVENT_COMPLETE,
    SSE_EVENT_ERROR,
    SSE_EVENT_MESSAGE_CREATED,
    SSE_EVENT_TOKEN,
)


class _StreamEventBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    event: str = Field(exclude=True)

    def payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"event"})

    def to_sse(self) -> str:
        """Render as a single SSE frame."""
        return f"event: {self.event}\ndata: {json.dumps(self.payload())}\n\n"


class MessageCreatedEvent(_StreamEventBase):
    """Placeholder row exists; clients attach tokens to ``messageId``."""

    event: Literal["message_created"] = Field(default=SSE_EVENT_MESSAGE_CREATED, exclude=True)
    message_id: str = Field(alias="messageId")


class TokenEvent(_StreamEventBase):
    event: Literal["token"] = Field(default=SSE_EVENT_TOKEN, exclude=True)
    token: str
    message_id: str = Field(alias="messageId")


class CompleteEvent(_StreamEventBase):
    event: Literal["complete"] = Field(default=SSE_EVENT_COMPLETE, exclude=True)
    message_id: str = Field(alias="messageId")
    full_text: str = Field(alias="fullText")


class ErrorEvent(_StreamEventBase):
    """Terminal failure. ``error`` is safe to show to the user."""

    event: Literal["error"] = Field(default=SSE_EVENT_ERROR, exclude=True)
    error: str


StreamEvent = MessageCreatedEvent | TokenEvent | CompleteEvent | ErrorEvent

TERMINAL_EVENTS: frozenset[str] = frozenset({SSE_EVENT_COMPLETE, SSE_EVENT_ERROR})


__all__ = [
    "TERMINAL_EVENTS",
    "CompleteEvent",
    "ErrorEvent",
    "MessageCreatedEvent",
    "StreamEvent",
    "TokenEvent",
]
