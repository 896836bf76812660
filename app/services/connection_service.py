"""
Connection requests between professionals.

A request is created pending by the requester and settled exactly once
(accepted or rejected) by the requested user.
"""

from app.db.helpers import DatabaseError
from app.infrastructure.observability.logging import get_logger
from app.models.domain.connection_domain import (
    Connection,
    ConnectionOverview,
    ConnectionResponseStatus,
)
from app.repositories.connection_repository import (
    ConnectionRepository,
    DuplicateConnectionError,
)
from app.repositories.profile_repository import ProfileRepository
from app.services.notification_service import NotificationService, notification_service

logger = get_logger(__name__)


class ConnectionServiceError(Exception):
    """Custom exception for connection service operations."""

    def __init__(self, message: str, user_id: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.user_id = user_id
        self.recoverable = recoverable


class ConnectionNotFoundError(ConnectionServiceError):
    """No such request, or it isn't addressed to the caller."""


class ConnectionConflictError(ConnectionServiceError):
    """The request can't be created or settled in its current state."""


async def send_connection_request(
    requester_id: str,
    requested_id: str,
    notifier: NotificationService = notification_service,
) -> Connection:
    """
    Create a pending request from requester_id to requested_id.

    Raises:
        ConnectionConflictError: self-request, or an open request/connection already exists
        ConnectionNotFoundError: requested user has no profile
        ConnectionServiceError: store failure
    """
    if requester_id == requested_id:
        raise ConnectionConflictError(
            "Cannot send a connection request to yourself",
            user_id=requester_id,
            recoverable=False,
        )

    try:
        target = await ProfileRepository.get_by_id(requested_id)
        if target is None:
            raise ConnectionNotFoundError("User not found", user_id=requester_id)

        existing = await ConnectionRepository.find_open_between(requester_id, requested_id)
        if existing is not None:
            raise ConnectionConflictError(
                f"A {existing.status} connection already exists",
                user_id=requester_id,
                recoverable=False,
            )

        connection = await ConnectionRepository.create(requester_id, requested_id)

    except DuplicateConnectionError as e:
        # Lost a race with a concurrent request for the same pair
        raise ConnectionConflictError(
            "A connection already exists", user_id=requester_id, recoverable=False
        ) from e
    except DatabaseError as e:
        logger.error(
            "Error sending connection request",
            requester_id=requester_id,
            requested_id=requested_id,
            error=str(e),
        )
        raise ConnectionServiceError(
            "Failed to send connection request", user_id=requester_id
        ) from e

    await notifier.send_local_notification(
        requested_id, "New connection request", "Someone wants to grab coffee with you"
    )
    return connection


async def respond_to_connection(
    connection_id: str,
    user_id: str,
    status: ConnectionResponseStatus,
    notifier: NotificationService = notification_service,
) -> Connection:
    """
    Accept or reject a pending request addressed to user_id.

    Raises:
        ConnectionNotFoundError: no such request for this user
        ConnectionConflictError: the request was already settled
        ConnectionServiceError: store failure
    """
    try:
        connection = await ConnectionRepository.get_by_id(connection_id)
        if connection is None or connection.requested_id != user_id:
            raise ConnectionNotFoundError("Connection request not found", user_id=user_id)

        if connection.status != "pending":
            raise ConnectionConflictError(
                f"Connection already {connection.status}", user_id=user_id, recoverable=False
            )

        updated = await ConnectionRepository.respond(connection_id, user_id, status)

    except DatabaseError as e:
        logger.error(
            "Error updating connection", connection_id=connection_id, user_id=user_id, error=str(e)
        )
        raise ConnectionServiceError("Failed to update connection", user_id=user_id) from e

    if updated is None:
        # Settled by a concurrent request between the read and the update
        raise ConnectionConflictError(
            "Connection already settled", user_id=user_id, recoverable=False
        )

    logger.info(
        "Connection request settled",
        connection_id=connection_id,
        user_id=user_id,
        status=status,
    )

    if status == "accepted":
        await notifier.send_local_notification(
            updated.requester_id, "Connection accepted", "You have a new coffee connection"
        )
    return updated.model_copy(
        update={
            "requester_profile": connection.requester_profile,
            "requested_profile": connection.requested_profile,
        }
    )


async def list_connections(user_id: str) -> ConnectionOverview:
    """
    Accepted connections, pending requests received, and pending requests sent.

    Raises:
        ConnectionServiceError: any of the three queries failed
    """
    try:
        accepted = await ConnectionRepository.list_accepted(user_id)
        pending = await ConnectionRepository.list_pending_received(user_id)
        sent = await ConnectionRepository.list_pending_sent(user_id)
    except DatabaseError as e:
        logger.error("Error fetching connections", user_id=user_id, error=str(e))
        raise ConnectionServiceError("Failed to load connections", user_id=user_id) from e

    overview = ConnectionOverview(
        connections=accepted, pending_requests=pending, sent_requests=sent
    )
    logger.info("Connections loaded", user_id=user_id, **overview.counts)
    return overview
