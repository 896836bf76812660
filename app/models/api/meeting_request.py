# app/models/api/meeting_request.py
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.domain.meeting_domain import MeetingStatusUpdate


class MeetingCreateRequest(BaseModel):
    attendee_id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    scheduled_for: datetime
    duration_minutes: int = Field(30, ge=5, le=480)
    location: str | None = Field(None, max_length=300)


class MeetingStatusRequest(BaseModel):
    status: MeetingStatusUpdate
