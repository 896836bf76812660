"""
Persistence for direct messages.
"""

from app.db.helpers import DatabaseError, execute_query, fetch_all, fetch_one, normalize_row
from app.infrastructure.observability.logging import get_logger
from app.models.domain.message_domain import Message

logger = get_logger(__name__)

MESSAGE_COLUMNS = "m.id, m.sender_id, m.receiver_id, m.content, m.read, m.created_at"


class MessageRepositoryError(DatabaseError):
    """More specific exception for message persistence failures."""


class MessageRepository:
    """Queries against the messages table."""

    @classmethod
    def _row_to_message(cls, row: dict | None) -> Message | None:
        if not row:
            return None
        return Message.model_validate(normalize_row(row))

    @classmethod
    async def list_for_user(cls, user_id: str) -> list[Message]:
        """
        Every message the user sent or received, newest first.

        The sender's profile is embedded only on messages the user received.
        """
        rows = await fetch_all(
            f"""
            SELECT
                {MESSAGE_COLUMNS},
                CASE WHEN m.sender_id <> %s THEN to_jsonb(sp) END AS sender_profile
            FROM messages m
            LEFT JOIN profiles sp ON sp.id = m.sender_id
            WHERE m.sender_id = %s OR m.receiver_id = %s
            ORDER BY m.created_at DESC
            """,
            (user_id, user_id, user_id),
        )
        return [cls._row_to_message(row) for row in rows]

    @classmethod
    async def list_thread(cls, user_id: str, other_user_id: str) -> list[Message]:
        """Both directions between two users, oldest first."""
        rows = await fetch_all(
            f"""
            SELECT {MESSAGE_COLUMNS}
            FROM messages m
            WHERE (m.sender_id = %s AND m.receiver_id = %s)
               OR (m.sender_id = %s AND m.receiver_id = %s)
            ORDER BY m.created_at ASC
            """,
            (user_id, other_user_id, other_user_id, user_id),
        )
        return [cls._row_to_message(row) for row in rows]

    @classmethod
    async def create(cls, sender_id: str, receiver_id: str, content: str) -> Message:
        row = await fetch_one(
            """
            INSERT INTO messages (sender_id, receiver_id, content, read)
            VALUES (%s, %s, %s, false)
            RETURNING id, sender_id, receiver_id, content, read, created_at
            """,
            (sender_id, receiver_id, content),
        )
        if not row:
            raise MessageRepositoryError("Failed to create message", operation="create")
        return cls._row_to_message(row)

    @classmethod
    async def mark_read(cls, receiver_id: str, sender_id: str) -> int:
        """Flip read on every unread message sender_id sent to receiver_id."""
        return await execute_query(
            """
            UPDATE messages
            SET read = true
            WHERE receiver_id = %s AND sender_id = %s AND read = false
            """,
            (receiver_id, sender_id),
        )
