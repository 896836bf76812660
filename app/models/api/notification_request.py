# app/models/api/notification_request.py
from pydantic import BaseModel, Field

from app.services.notification_service import PushPlatform


class PushTokenRequest(BaseModel):
    """Expo push token registered by the mobile client."""

    token: str = Field(..., min_length=1, max_length=300)
    platform: PushPlatform
