"""
Assistant reply endpoints (v1).

``/ai/respond`` returns one stored reply; ``/ai/stream`` streams it as
Server-Sent Events (message_created, token, complete | error).
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from api.dependencies import Chat, Streams
from api.middleware.request_context import get_request_context, update_request_context
from core.constants import SSE_HEADERS, SSE_MEDIA_TYPE
from models.schemas.messages import AssistantReplyRequest, AssistantReplyResponse

router = APIRouter()


@router.post(
    "/ai/respond",
    response_model=AssistantReplyResponse,
    summary="Blocking assistant reply",
    responses={404: {"description": "Assistant not found"}, 502: {"description": "Vendor error"}},
)
async def respond(body: AssistantReplyRequest, chat: Chat) -> AssistantReplyResponse:
    update_request_context(channel_id=body.channel_id, assistant_id=body.assistant_id)
    reply = await chat.respond(body.assistant_id, body.channel_id, body.user_message, body.context)
    return AssistantReplyResponse(success=True, message=reply.to_api())


@router.post(
    "/ai/stream",
    summary="Streamed assistant reply",
    description=(
        "Server-Sent Events. Frames: `message_created {messageId}`, `token {token, messageId}`, "
        "then exactly one of `complete {messageId, fullText}` or `error {error}`."
    ),
    response_class=StreamingResponse,
    responses={
        200: {"content": {SSE_MEDIA_TYPE: {}}, "description": "Event stream"},
        404: {"description": "Assistant not found"},
    },
)
async def stream(body: AssistantReplyRequest, chat: Chat, streams: Streams) -> StreamingResponse:
    update_request_context(channel_id=body.channel_id, assistant_id=body.assistant_id)

    # Resolved before the stream opens so an unknown assistant is a plain 404
    assistant = await chat.get_assistant(body.assistant_id)

    return StreamingResponse(
        streams.frames(
            assistant,
            body.channel_id,
            body.user_message,
            context=body.context,
            parent_context=get_request_context(),
        ),
        media_type=SSE_MEDIA_TYPE,
        headers=SSE_HEADERS,
    )
