"""
Message API Routes
Inbox (snapshot and live stream), threads, sending and read receipts.
"""

import asyncio
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from app.auth.verify import current_user_id
from app.infrastructure.observability.logging import get_logger
from app.models.api.message_request import MessageSendRequest
from app.models.api.message_response import (
    ConversationListResponse,
    MarkReadResponse,
    ThreadResponse,
    encode_sse,
)
from app.models.domain.message_domain import Message
from app.realtime.conversation_feed import FEED_CLOSED
from app.services.conversation_service import (
    ConversationServiceError,
    MalformedMessageError,
    fetch_conversations,
)
from app.services.message_service import (
    MessageRecipientNotFoundError,
    MessageServiceError,
    get_thread,
    mark_thread_read,
    send_message,
)
from app.session import ApplicationSession, get_app_session

logger = get_logger(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])

# Seconds between keep-alive comments on an idle stream
STREAM_KEEPALIVE_SECONDS = 15.0


def _refresh_open_feed(session: ApplicationSession, user_id: str) -> None:
    """Nudge the user's own open inbox streams after they change something."""
    refresher = session.feed.refresher_for(user_id)
    if refresher is not None:
        refresher.trigger()


@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(user_id: str = Depends(current_user_id)):
    """One entry per counterparty, most recent first."""
    try:
        conversations = await fetch_conversations(user_id)
    except (ConversationServiceError, MalformedMessageError) as e:
        logger.error("Error listing conversations", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load conversations",
        )
    return ConversationListResponse.from_domain(conversations, user_id)


@router.get("/conversations/stream")
async def stream_conversations(
    request: Request,
    user_id: str = Depends(current_user_id),
    session: ApplicationSession = Depends(get_app_session),
):
    """
    Server-sent events: a `conversations` event with the full list whenever a
    message for the caller arrives, and a final `closed` event on sign-out.
    """
    feed = session.feed

    async def _event_stream():
        # Subscribe only once the body runs; unsubscribe in finally.
        queue = feed.subscribe(user_id)
        try:
            while True:
                try:
                    item = await asyncio.wait_for(queue.get(), timeout=STREAM_KEEPALIVE_SECONDS)
                except TimeoutError:
                    if await request.is_disconnected():
                        break
                    yield ": keep-alive\n\n"
                    continue

                if item is FEED_CLOSED:
                    yield encode_sse("closed", {"reason": "signed_out"})
                    break

                payload = ConversationListResponse.from_domain(item, user_id)
                yield encode_sse("conversations", payload.model_dump(mode="json"))
        finally:
            await feed.unsubscribe(user_id, queue)
            logger.info("Conversation stream ended", user_id=user_id)

    logger.info("Conversation stream opened", user_id=user_id)
    return StreamingResponse(
        _event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/{other_user_id}", response_model=ThreadResponse)
async def get_messages(other_user_id: UUID, user_id: str = Depends(current_user_id)):
    """Messages exchanged with one person, oldest first."""
    try:
        messages = await get_thread(user_id, str(other_user_id))
    except MessageServiceError as e:
        logger.error("Error loading thread", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load messages"
        )
    return ThreadResponse(other_user_id=str(other_user_id), messages=messages)


@router.post("", response_model=Message, status_code=status.HTTP_201_CREATED)
async def post_message(
    request: MessageSendRequest,
    user_id: str = Depends(current_user_id),
    session: ApplicationSession = Depends(get_app_session),
):
    try:
        message = await send_message(user_id, str(request.receiver_id), request.content)
    except MessageRecipientNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except MessageServiceError as e:
        if not e.recoverable:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        logger.error("Error sending message", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send message"
        )

    _refresh_open_feed(session, user_id)
    return message


@router.post("/{other_user_id}/read", response_model=MarkReadResponse)
async def mark_read(
    other_user_id: UUID,
    user_id: str = Depends(current_user_id),
    session: ApplicationSession = Depends(get_app_session),
):
    try:
        updated = await mark_thread_read(user_id, str(other_user_id))
    except MessageServiceError as e:
        logger.error("Error marking messages read", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to mark messages read",
        )

    if updated:
        _refresh_open_feed(session, user_id)
    return MarkReadResponse(success=True, updated=updated)
