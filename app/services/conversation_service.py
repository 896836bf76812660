"""
Conversation aggregation for the messages inbox.

Turns a flat snapshot of direct messages touching the current user into one
summary per counterparty (last message, unread count, counterparty profile),
newest thread first. The grouping step is a pure function; the only I/O is
the message fetch and a single batch profile lookup for counterparties whose
profile wasn't embedded in any received message.
"""

from collections.abc import Awaitable, Callable, Iterable, Sequence
from datetime import datetime

from app.db.helpers import DatabaseError, with_db_retry
from app.infrastructure.observability.logging import get_logger
from app.models.domain.message_domain import Conversation, Message
from app.models.domain.profile_domain import UserProfile
from app.repositories.message_repository import MessageRepository
from app.services.profile_service import get_profiles_by_ids

logger = get_logger(__name__)

ProfileLookup = Callable[[list[str]], Awaitable[Iterable[UserProfile]]]


class ConversationServiceError(Exception):
    """Raised when the conversation list can't be built from the store."""

    def __init__(self, message: str, user_id: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.user_id = user_id
        self.recoverable = recoverable


class MalformedMessageError(ValueError):
    """A message in the snapshot can't be attributed to a counterparty."""

    def __init__(self, message: str, message_id: str | None = None):
        super().__init__(message)
        self.message_id = message_id


def counterparty_id(message: Message, current_user_id: str) -> str:
    """The endpoint of the message that isn't the current user."""
    if not message.sender_id or not message.receiver_id:
        raise MalformedMessageError(
            "Message is missing a sender or receiver id", message_id=message.id
        )
    if message.sender_id == current_user_id:
        return message.receiver_id
    if message.receiver_id == current_user_id:
        return message.sender_id
    raise MalformedMessageError(
        "Message does not involve the current user", message_id=message.id
    )


def aggregate_conversations(
    messages: Sequence[Message], current_user_id: str
) -> list[Conversation]:
    """
    Group messages into per-counterparty conversations.

    last_message is the message with the greatest created_at; on a tie the one
    that comes first in ``messages`` wins. unread_count counts received
    messages with read=False. The counterparty profile comes from the
    sender_profile of any message they sent. Output is ordered by
    last_message.created_at, newest first; conversations without a
    last_message go last.
    """
    last_messages: dict[str, Message] = {}
    unread_counts: dict[str, int] = {}
    profiles: dict[str, UserProfile] = {}

    for message in messages:
        other_id = counterparty_id(message, current_user_id)

        current = last_messages.get(other_id)
        if current is None or message.created_at > current.created_at:
            last_messages[other_id] = message

        unread_counts.setdefault(other_id, 0)
        if message.receiver_id == current_user_id and not message.read:
            unread_counts[other_id] += 1

        if (
            message.sender_id == other_id
            and message.sender_profile is not None
            and other_id not in profiles
        ):
            profiles[other_id] = message.sender_profile

    conversations = [
        Conversation(
            other_user_id=other_id,
            other_user_profile=profiles.get(other_id),
            last_message=last_message,
            unread_count=unread_counts[other_id],
        )
        for other_id, last_message in last_messages.items()
    ]
    return sort_conversations(conversations)


def sort_conversations(conversations: Iterable[Conversation]) -> list[Conversation]:
    """Newest last_message first; summaries without one keep their relative order at the end."""
    conversations = list(conversations)
    dated = [c for c in conversations if c.last_message is not None]
    undated = [c for c in conversations if c.last_message is None]
    dated.sort(key=_last_message_time, reverse=True)
    return dated + undated


def _last_message_time(conversation: Conversation) -> datetime:
    return conversation.last_message.created_at


def missing_profile_ids(conversations: Iterable[Conversation]) -> list[str]:
    return [c.other_user_id for c in conversations if c.other_user_profile is None]


async def resolve_missing_profiles(
    conversations: list[Conversation], profile_lookup: ProfileLookup
) -> list[Conversation]:
    """
    Fill in counterparty profiles with a single batch lookup.

    Counterparties the lookup doesn't return keep other_user_profile=None.
    Lookup failures propagate unchanged.
    """
    missing = missing_profile_ids(conversations)
    if not missing:
        return conversations

    found = {profile.id: profile for profile in await profile_lookup(missing)}

    unresolved = [user_id for user_id in missing if user_id not in found]
    if unresolved:
        logger.warning("Counterparty profiles not found", user_ids=unresolved)

    return [
        conversation.model_copy(
            update={"other_user_profile": found.get(conversation.other_user_id)}
        )
        if conversation.other_user_profile is None
        else conversation
        for conversation in conversations
    ]


async def build_conversations(
    current_user_id: str, messages: Sequence[Message], profile_lookup: ProfileLookup
) -> list[Conversation]:
    """Aggregate a snapshot and resolve counterparty profiles."""
    conversations = aggregate_conversations(messages, current_user_id)
    return await resolve_missing_profiles(conversations, profile_lookup)


@with_db_retry(max_retries=2, base_delay=0.1)
async def _load_messages(current_user_id: str) -> list[Message]:
    return await MessageRepository.list_for_user(current_user_id)


async def fetch_conversations(current_user_id: str) -> list[Conversation]:
    """
    Fetch every message touching the user and aggregate them into conversations.

    Raises:
        ConversationServiceError: the message fetch or the profile lookup failed.
            Nothing partially aggregated is returned.
    """
    try:
        messages = await _load_messages(current_user_id)
        conversations = await build_conversations(
            current_user_id, messages, get_profiles_by_ids
        )
    except DatabaseError as e:
        logger.error("Failed to load conversations", user_id=current_user_id, error=str(e))
        raise ConversationServiceError(
            "Failed to load conversations", user_id=current_user_id, recoverable=e.recoverable
        ) from e

    logger.info(
        "Conversations loaded",
        user_id=current_user_id,
        message_count=len(messages),
        conversation_count=len(conversations),
        unread_total=sum(c.unread_count for c in conversations),
    )
    return conversations
