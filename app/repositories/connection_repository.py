"""
Persistence for connection requests.
"""

from psycopg import errors

from app.db.helpers import DatabaseError, fetch_all, fetch_one, normalize_row
from app.infrastructure.observability.logging import get_logger
from app.models.domain.connection_domain import (
    Connection,
    ConnectionResponseStatus,
)

logger = get_logger(__name__)

_SELECT_WITH_PROFILES = """
    SELECT
        c.id, c.requester_id, c.requested_id, c.status, c.created_at,
        to_jsonb(rp) AS requester_profile,
        to_jsonb(dp) AS requested_profile
    FROM connections c
    LEFT JOIN profiles rp ON rp.id = c.requester_id
    LEFT JOIN profiles dp ON dp.id = c.requested_id
"""


class ConnectionRepositoryError(DatabaseError):
    """More specific exception for connection persistence failures."""


class DuplicateConnectionError(ConnectionRepositoryError):
    """An open (pending or accepted) connection between the pair already exists."""


class ConnectionRepository:
    """Queries against the connections table."""

    @classmethod
    def _row_to_connection(cls, row: dict | None) -> Connection | None:
        if not row:
            return None
        return Connection.model_validate(normalize_row(row))

    @classmethod
    async def create(cls, requester_id: str, requested_id: str) -> Connection:
        """
        Insert a pending request.

        The connections_open_pair_idx unique index rejects a second open
        connection between the same two users, in either direction.
        """
        try:
            row = await fetch_one(
                """
                INSERT INTO connections (requester_id, requested_id, status)
                VALUES (%s, %s, 'pending')
                RETURNING id, requester_id, requested_id, status, created_at
                """,
                (requester_id, requested_id),
            )
        except DatabaseError as e:
            if isinstance(e.__cause__, errors.UniqueViolation):
                raise DuplicateConnectionError(
                    "An open connection already exists", operation="create", recoverable=False
                ) from e
            raise

        if not row:
            raise ConnectionRepositoryError(
                "Failed to create connection request", operation="create"
            )

        logger.info(
            "Connection request created", requester_id=requester_id, requested_id=requested_id
        )
        return cls._row_to_connection(row)

    @classmethod
    async def get_by_id(cls, connection_id: str) -> Connection | None:
        row = await fetch_one(_SELECT_WITH_PROFILES + " WHERE c.id = %s", (connection_id,))
        return cls._row_to_connection(row)

    @classmethod
    async def find_open_between(cls, user_a: str, user_b: str) -> Connection | None:
        """A pending or accepted connection between the pair, in either direction."""
        row = await fetch_one(
            """
            SELECT id, requester_id, requested_id, status, created_at
            FROM connections
            WHERE status IN ('pending', 'accepted')
              AND ((requester_id = %s AND requested_id = %s)
                OR (requester_id = %s AND requested_id = %s))
            LIMIT 1
            """,
            (user_a, user_b, user_b, user_a),
        )
        return cls._row_to_connection(row)

    @classmethod
    async def respond(
        cls, connection_id: str, requested_id: str, status: ConnectionResponseStatus
    ) -> Connection | None:
        """
        Move a pending request addressed to requested_id into its final status.

        Returns None when no row matched (wrong id, wrong party, or already settled).
        """
        row = await fetch_one(
            """
            UPDATE connections
            SET status = %s
            WHERE id = %s AND requested_id = %s AND status = 'pending'
            RETURNING id, requester_id, requested_id, status, created_at
            """,
            (status, connection_id, requested_id),
        )
        return cls._row_to_connection(row)

    @classmethod
    async def list_accepted(cls, user_id: str) -> list[Connection]:
        rows = await fetch_all(
            _SELECT_WITH_PROFILES
            + """
            WHERE (c.requester_id = %s OR c.requested_id = %s)
              AND c.status = 'accepted'
            ORDER BY c.created_at DESC
            """,
            (user_id, user_id),
        )
        return [cls._row_to_connection(row) for row in rows]

    @classmethod
    async def list_pending_received(cls, user_id: str) -> list[Connection]:
        rows = await fetch_all(
            _SELECT_WITH_PROFILES
            + """
            WHERE c.requested_id = %s AND c.status = 'pending'
            ORDER BY c.created_at DESC
            """,
            (user_id,),
        )
        return [cls._row_to_connection(row) for row in rows]

    @classmethod
    async def list_pending_sent(cls, user_id: str) -> list[Connection]:
        rows = await fetch_all(
            _SELECT_WITH_PROFILES
            + """
            WHERE c.requester_id = %s AND c.status = 'pending'
            ORDER BY c.created_at DESC
            """,
            (user_id,),
        )
        return [cls._row_to_connection(row) for row in rows]
