# app/models/api/session_response.py
from pydantic import BaseModel


class PushTokenResponse(BaseModel):
    success: bool
    platform: str
    notifications_enabled: bool


class SignOutResponse(BaseModel):
    success: bool
    streams_closed: bool
    reminders_removed: int
