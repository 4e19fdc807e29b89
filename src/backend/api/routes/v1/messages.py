"""
Channel message endpoints (v1).

Sending a human message stores it and asks every mentioned assistant to
reply, one after another. Assistant failures never fail the send.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Path, Query

from api.dependencies import Chat, Store
from api.middleware.request_context import update_request_context
from models.schemas.messages import (
    AssistantFailureResponse,
    ChannelMessagesResponse,
    SendMessageRequest,
    SendMessageResponse,
)

router = APIRouter()


@router.post(
    "/messages/send",
    response_model=SendMessageResponse,
    summary="Send a message",
    description=(
        "Store a human message in a channel, then collect one reply per distinct mentioned "
        "assistant. Assistants that fail are listed in `ai_failures`."
    ),
)
async def send_message(body: SendMessageRequest, chat: Chat) -> SendMessageResponse:
    update_request_context(channel_id=body.channel_id)

    result = await chat.send(body.channel_id, body.author_id, body.content, body.mentions)
    dispatch = result.dispatch
    return SendMessageResponse(
        success=True,
        message=result.message.to_api(),
        assistant_messages=[reply.to_api() for reply in dispatch.replies + dispatch.notices],
        ai_failures=[AssistantFailureResponse(**failure.to_api()) for failure in dispatch.failures],
    )


@router.get(
    "/channels/{channel_id}/messages",
    response_model=ChannelMessagesResponse,
    summary="List channel messages",
    description="Latest messages in a channel, oldest first.",
)
async def list_channel_messages(
    store: Store,
    channel_id: Annotated[str, Path(..., min_length=1)],
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> ChannelMessagesResponse:
    messages = await store.list_channel_messages(channel_id, limit)
    return ChannelMessagesResponse(messages=[m.to_api() for m in messages], count=len(messages))
