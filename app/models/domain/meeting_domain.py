from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

from app.models.domain.profile_domain import UserProfile

MeetingStatus = Literal["pending", "confirmed", "cancelled", "completed"]
MeetingStatusUpdate = Literal["confirmed", "cancelled"]

# "completed" is only ever set outside the API
ALLOWED_MEETING_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"confirmed", "cancelled"}),
    "confirmed": frozenset({"cancelled"}),
    "cancelled": frozenset(),
    "completed": frozenset(),
}


class Meeting(BaseModel):
    """A coffee meeting between an organizer and one attendee."""

    model_config = ConfigDict(extra="ignore")

    id: str
    organizer_id: str
    attendee_id: str
    title: str
    description: str | None = None
    scheduled_for: datetime
    duration_minutes: int
    location: str | None = None
    status: MeetingStatus
    created_at: datetime
    organizer_profile: UserProfile | None = None
    attendee_profile: UserProfile | None = None

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.organizer_id, self.attendee_id)

    def can_transition_to(self, status: str) -> bool:
        return status in ALLOWED_MEETING_TRANSITIONS.get(self.status, frozenset())
