"""
Notification API Routes
Push token registration for meeting reminders and alerts.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from app.auth.verify import current_user_id
from app.infrastructure.observability.logging import get_logger
from app.models.api.notification_request import PushTokenRequest
from app.models.api.session_response import PushTokenResponse
from app.services.notification_service import SILENT_PLATFORMS
from app.session import ApplicationSession, get_app_session

logger = get_logger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("/push-token", response_model=PushTokenResponse)
async def register_push_token(
    request: PushTokenRequest,
    user_id: str = Depends(current_user_id),
    session: ApplicationSession = Depends(get_app_session),
):
    stored = await session.notifications.register_push_token(
        user_id, request.token, request.platform
    )
    if not stored:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to register push token",
        )

    return PushTokenResponse(
        success=True,
        platform=request.platform,
        notifications_enabled=request.platform not in SILENT_PLATFORMS,
    )
