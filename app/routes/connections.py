"""
Connection API Routes
Send, accept/reject and list connection requests.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from app.auth.verify import current_user_id
from app.infrastructure.observability.logging import get_logger
from app.models.api.connection_request import ConnectionCreateRequest, ConnectionRespondRequest
from app.models.api.connection_response import (
    ConnectionActionResponse,
    ConnectionOverviewResponse,
)
from app.services.connection_service import (
    ConnectionConflictError,
    ConnectionNotFoundError,
    ConnectionServiceError,
    list_connections,
    respond_to_connection,
    send_connection_request,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/connections", tags=["connections"])


@router.get("", response_model=ConnectionOverviewResponse)
async def get_connections(user_id: str = Depends(current_user_id)):
    """Accepted connections plus pending requests in both directions."""
    try:
        overview = await list_connections(user_id)
    except ConnectionServiceError as e:
        logger.error("Error listing connections", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load connections"
        )
    return ConnectionOverviewResponse.from_domain(overview)


@router.post("", response_model=ConnectionActionResponse, status_code=status.HTTP_201_CREATED)
async def create_connection_request(
    request: ConnectionCreateRequest, user_id: str = Depends(current_user_id)
):
    try:
        connection = await send_connection_request(user_id, str(request.requested_id))
    except ConnectionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ConnectionConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ConnectionServiceError as e:
        logger.error("Error sending connection request", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send connection request",
        )

    return ConnectionActionResponse(
        success=True, message="Connection request sent", connection=connection
    )


@router.post("/{connection_id}/respond", response_model=ConnectionActionResponse)
async def respond_to_connection_request(
    connection_id: UUID,
    request: ConnectionRespondRequest,
    user_id: str = Depends(current_user_id),
):
    try:
        connection = await respond_to_connection(str(connection_id), user_id, request.status)
    except ConnectionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ConnectionConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ConnectionServiceError as e:
        logger.error(
            "Error responding to connection", user_id=user_id, connection_id=str(connection_id), error=str(e)
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update connection"
        )

    return ConnectionActionResponse(
        success=True, message=f"Connection {request.status}", connection=connection
    )
