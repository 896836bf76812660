# app/models/api/meeting_response.py
from datetime import date

from pydantic import BaseModel

from app.models.domain.meeting_domain import Meeting


class MeetingDayResponse(BaseModel):
    """Response for GET /meetings"""

    day: date
    timezone: str
    meetings: list[Meeting]


class MeetingActionResponse(BaseModel):
    success: bool
    message: str
    meeting: Meeting
