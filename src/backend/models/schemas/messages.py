"""
Message and assistant-reply API schemas.

Request/response models for sending channel messages and requesting
assistant replies, blocking or streamed.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.chat_models import ContextChunk


def _require_text(value: str) -> str:
    stripped = value.strip()
    if not stripped:
        raise ValueError("must not be blank")
    return stripped


class SendMessageRequest(BaseModel):
    """A human message posted to a channel."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "channel_id": "8b0f4c8e-2f1a-4a5e-9d8e-0f4f6a1b2c3d",
                "author_id": "1d2c3b4a-5e6f-4a7b-8c9d-0e1f2a3b4c5d",
                "content": "@Analyst can you summarise last week's numbers?",
                "mentions": ["5f6e7d8c-9b0a-4c1d-8e2f-3a4b5c6d7e8f"],
            }
        }
    )

    channel_id: str = Field(..., min_length=1, description="Channel the message is posted to")
    author_id: str = Field(..., min_length=1, description="Human author (authenticated upstream)")
    content: str = Field(..., max_length=100_000, description="Message text; surrounding whitespace is trimmed")
    mentions: list[str] = Field(default_factory=list, description="Mentioned assistant ids, in mention order")

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        return _require_text(v)


class AssistantFailureResponse(BaseModel):
    assistant_id: str
    error: str


class SendMessageResponse(BaseModel):
    """The stored human message plus whatever assistant replies were produced."""

    success: bool = True
    message: dict[str, Any] = Field(..., description="The stored human message")
    assistant_messages: list[dict[str, Any]] = Field(
        default_factory=list, description="Assistant replies created, in mention order"
    )
    ai_failures: list[AssistantFailureResponse] = Field(
        default_factory=list, description="Mentioned assistants that did not reply"
    )


class AssistantReplyRequest(BaseModel):
    """Ask one assistant to reply to a user message in a channel."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "assistant_id": "5f6e7d8c-9b0a-4c1d-8e2f-3a4b5c6d7e8f",
                "channel_id": "8b0f4c8e-2f1a-4a5e-9d8e-0f4f6a1b2c3d",
                "user_message": "What changed in the Q3 plan?",
                "context": [{"content": "Q3 plan v2 moves launch to October.", "source": "Q3 Plan", "page": 4}],
            }
        }
    )

    assistant_id: str = Field(..., min_length=1)
    channel_id: str = Field(..., min_length=1)
    user_message: str = Field(..., max_length=100_000)
    context: list[ContextChunk] = Field(
        default_factory=list, description="Retrieved knowledge chunks folded into the system prompt"
    )

    @field_validator("user_message")
    @classmethod
    def user_message_not_blank(cls, v: str) -> str:
        return _require_text(v)


class AssistantReplyResponse(BaseModel):
    success: bool = True
    message: dict[str, Any] = Field(..., description="The stored assistant reply")


class ChannelMessagesResponse(BaseModel):
    messages: list[dict[str, Any]] = Field(default_factory=list, description="Oldest first")
    count: int = Field(default=0, ge=0)
