"""
Domain models for channels, assistants and messages.

These mirror the rows owned by the message store. The pipeline reads
assistants, and writes messages through MessageStore only.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class AuthorType(str, Enum):
    HUMAN = "human"
    ASSISTANT = "assistant"


Role = Literal["user", "assistant"]


class AssistantConfig(BaseModel):
    """Immutable assistant configuration read from the ``assistants`` table.

    ``model_provider`` is kept as a plain string so a misconfigured row still
    loads; provider dispatch rejects unknown values per call.
    """

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    id: str
    name: str = ""
    role: str = ""
    system_prompt: str = ""
    model_provider: str
    model_name: str
    temperature: float | None = None
    max_tokens: int | None = None
    workspace_id: str | None = None


class ConversationTurn(BaseModel):
    """One replayed history entry in vendor-neutral form."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class ContextChunk(BaseModel):
    """Retrieved knowledge snippet supplied by an external search step."""

    content: str
    source: str = "Company Knowledge"
    page: int | None = None


class NewMessage(BaseModel):
    """Insert payload for a chat message."""

    channel_id: str
    author_id: str
    author_type: AuthorType
    content: str
    mentions: list[str] = Field(default_factory=list)
    counts_toward_limit: bool = False

    @classmethod
    def assistant_reply(cls, channel_id: str, assistant_id: str, content: str) -> NewMessage:
        """Assistant replies never mention anyone and never count toward usage limits."""
        return cls(
            channel_id=channel_id,
            author_id=assistant_id,
            author_type=AuthorType.ASSISTANT,
            content=content,
            mentions=[],
            counts_toward_limit=False,
        )


class ChatMessage(BaseModel):
    """Persisted chat message."""

    model_config = ConfigDict(use_enum_values=True)

    id: str
    channel_id: str
    author_id: str
    author_type: AuthorType
    content: str
    mentions: list[str] = Field(default_factory=list)
    counts_toward_limit: bool = False
    created_at: datetime | None = None

    def to_turn(self) -> ConversationTurn:
        role: Role = "user" if self.author_type == AuthorType.HUMAN.value else "assistant"
        return ConversationTurn(role=role, content=self.content)

    def to_api(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


__all__ = [
    "AssistantConfig",
    "AuthorType",
    "ChatMessage",
    "ContextChunk",
    "ConversationTurn",
    "NewMessage",
    "Role",
]
