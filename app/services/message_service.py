"""
Direct messages: sending, reading a thread, and marking a thread read.
"""

from app.db.helpers import DatabaseError
from app.infrastructure.observability.logging import get_logger
from app.models.domain.message_domain import Message
from app.repositories.message_repository import MessageRepository
from app.repositories.profile_repository import ProfileRepository

logger = get_logger(__name__)

MAX_MESSAGE_LENGTH = 4000


class MessageServiceError(Exception):
    """Custom exception for message service operations."""

    def __init__(self, message: str, user_id: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.user_id = user_id
        self.recoverable = recoverable


class MessageRecipientNotFoundError(MessageServiceError):
    """The receiver has no profile."""


async def send_message(sender_id: str, receiver_id: str, content: str) -> Message:
    """
    Store a new message. Receivers learn about it through the realtime feed.

    Raises:
        MessageRecipientNotFoundError: receiver has no profile
        MessageServiceError: empty content, self-message, or store failure
    """
    text = content.strip()
    if not text:
        raise MessageServiceError("Message cannot be empty", user_id=sender_id, recoverable=False)
    if len(text) > MAX_MESSAGE_LENGTH:
        raise MessageServiceError("Message is too long", user_id=sender_id, recoverable=False)
    if sender_id == receiver_id:
        raise MessageServiceError(
            "Cannot send a message to yourself", user_id=sender_id, recoverable=False
        )

    try:
        if await ProfileRepository.get_by_id(receiver_id) is None:
            raise MessageRecipientNotFoundError("Recipient not found", user_id=sender_id)

        message = await MessageRepository.create(sender_id, receiver_id, text)
    except DatabaseError as e:
        logger.error(
            "Error sending message", sender_id=sender_id, receiver_id=receiver_id, error=str(e)
        )
        raise MessageServiceError("Failed to send message", user_id=sender_id) from e

    logger.info("Message sent", message_id=message.id, sender_id=sender_id, receiver_id=receiver_id)
    return message


async def get_thread(user_id: str, other_user_id: str) -> list[Message]:
    try:
        return await MessageRepository.list_thread(user_id, other_user_id)
    except DatabaseError as e:
        logger.error(
            "Error fetching thread", user_id=user_id, other_user_id=other_user_id, error=str(e)
        )
        raise MessageServiceError("Failed to load messages", user_id=user_id) from e


async def mark_thread_read(user_id: str, other_user_id: str) -> int:
    """Mark everything other_user_id sent to user_id as read. Returns the number changed."""
    try:
        changed = await MessageRepository.mark_read(receiver_id=user_id, sender_id=other_user_id)
    except DatabaseError as e:
        logger.error(
            "Error marking thread read", user_id=user_id, other_user_id=other_user_id, error=str(e)
        )
        raise MessageServiceError("Failed to mark messages read", user_id=user_id) from e

    if changed:
        logger.info("Thread marked read", user_id=user_id, other_user_id=other_user_id, count=changed)
    return changed
