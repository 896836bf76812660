# app/models/api/message_response.py
import json

from pydantic import BaseModel

from app.models.domain.message_domain import Conversation, Message
from app.models.domain.profile_domain import UserProfile

PREVIEW_LENGTH = 50


def message_preview(message: Message, current_user_id: str, max_length: int = PREVIEW_LENGTH) -> str:
    """Inbox preview line: truncated content, prefixed with "You: " for sent messages."""
    content = message.content
    if len(content) > max_length:
        content = content[:max_length] + "..."
    if message.sender_id == current_user_id:
        return f"You: {content}"
    return content


class ConversationSummary(BaseModel):
    other_user_id: str
    other_user_profile: UserProfile | None
    last_message: Message | None
    unread_count: int
    preview: str | None

    @classmethod
    def from_domain(cls, conversation: Conversation, current_user_id: str) -> "ConversationSummary":
        last = conversation.last_message
        return cls(
            other_user_id=conversation.other_user_id,
            other_user_profile=conversation.other_user_profile,
            last_message=last,
            unread_count=conversation.unread_count,
            preview=message_preview(last, current_user_id) if last else None,
        )


class ConversationListResponse(BaseModel):
    """Response for GET /messages/conversations (also the SSE payload)."""

    conversations: list[ConversationSummary]
    unread_total: int

    @classmethod
    def from_domain(
        cls, conversations: list[Conversation], current_user_id: str
    ) -> "ConversationListResponse":
        return cls(
            conversations=[ConversationSummary.from_domain(c, current_user_id) for c in conversations],
            unread_total=sum(c.unread_count for c in conversations),
        )


class ThreadResponse(BaseModel):
    other_user_id: str
    messages: list[Message]


class MarkReadResponse(BaseModel):
    success: bool
    updated: int


def encode_sse(event: str, data: dict) -> str:
    """Frame one server-sent event."""
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=True)}\n\n"
