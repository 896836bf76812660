from datetime import datetime

from pydantic import BaseModel, ConfigDict

from app.models.domain.profile_domain import UserProfile


class Message(BaseModel):
    """Direct message from sender to receiver."""

    model_config = ConfigDict(extra="ignore")

    id: str
    sender_id: str
    receiver_id: str
    content: str
    read: bool = False
    created_at: datetime
    sender_profile: UserProfile | None = None


class Conversation(BaseModel):
    """
    Per-counterparty thread summary.

    Derived from a message snapshot on every fetch and never persisted.
    """

    model_config = ConfigDict(frozen=True)

    other_user_id: str
    other_user_profile: UserProfile | None = None
    last_message: Message | None = None
    unread_count: int = 0
