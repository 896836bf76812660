"""
Meeting scheduling: day agenda, creation and confirm/cancel transitions.
"""

from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.config import settings
from app.db.helpers import DatabaseError
from app.infrastructure.observability.logging import get_logger
from app.models.domain.meeting_domain import (
    ALLOWED_MEETING_TRANSITIONS,
    Meeting,
    MeetingStatusUpdate,
)
from app.repositories.meeting_repository import MeetingRepository
from app.repositories.profile_repository import ProfileRepository
from app.services.notification_service import NotificationService, notification_service

logger = get_logger(__name__)


class MeetingServiceError(Exception):
    """Custom exception for meeting service operations."""

    def __init__(self, message: str, user_id: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.user_id = user_id
        self.recoverable = recoverable


class MeetingNotFoundError(MeetingServiceError):
    """No such meeting, or the caller isn't a participant."""


class MeetingTransitionError(MeetingServiceError):
    """The requested status change isn't allowed from the current status."""


def day_bounds(day: date, tz_name: str = "UTC") -> tuple[datetime, datetime]:
    """Start (00:00:00) and end (23:59:59.999) of a local calendar day, in UTC."""
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise MeetingServiceError(f"Unknown timezone: {tz_name}", recoverable=False) from e

    start = datetime.combine(day, time.min, tzinfo=tz)
    end = start + timedelta(days=1) - timedelta(milliseconds=1)
    return start.astimezone(UTC), end.astimezone(UTC)


async def list_meetings_for_day(user_id: str, day: date, tz_name: str = "UTC") -> list[Meeting]:
    """
    Meetings the user organizes or attends on the given local day, earliest first.

    Raises:
        MeetingServiceError: bad timezone or store failure
    """
    start, end = day_bounds(day, tz_name)
    try:
        meetings = await MeetingRepository.list_for_user_between(user_id, start, end)
    except DatabaseError as e:
        logger.error("Error fetching meetings", user_id=user_id, day=day.isoformat(), error=str(e))
        raise MeetingServiceError("Failed to load meetings", user_id=user_id) from e

    logger.info("Meetings loaded", user_id=user_id, day=day.isoformat(), count=len(meetings))
    return meetings


async def create_meeting(
    organizer_id: str,
    attendee_id: str,
    title: str,
    scheduled_for: datetime,
    duration_minutes: int,
    description: str | None = None,
    location: str | None = None,
    notifier: NotificationService = notification_service,
) -> Meeting:
    """
    Create a pending meeting and queue reminders for both participants.

    Raises:
        MeetingServiceError: self-invite, unknown attendee, or store failure
    """
    if organizer_id == attendee_id:
        raise MeetingServiceError(
            "Cannot schedule a meeting with yourself", user_id=organizer_id, recoverable=False
        )

    if scheduled_for.tzinfo is None:
        scheduled_for = scheduled_for.replace(tzinfo=UTC)

    try:
        if await ProfileRepository.get_by_id(attendee_id) is None:
            raise MeetingNotFoundError("Attendee not found", user_id=organizer_id)

        meeting = await MeetingRepository.create(
            organizer_id=organizer_id,
            attendee_id=attendee_id,
            title=title,
            scheduled_for=scheduled_for,
            duration_minutes=duration_minutes,
            description=description,
            location=location,
        )
    except DatabaseError as e:
        logger.error("Error creating meeting", organizer_id=organizer_id, error=str(e))
        raise MeetingServiceError("Failed to create meeting", user_id=organizer_id) from e

    body = f"{meeting.title} starts in {settings.MEETING_REMINDER_LEAD_MINUTES} minutes"
    for participant in (organizer_id, attendee_id):
        await notifier.schedule_meeting_reminder(
            participant,
            "Coffee meeting soon",
            body,
            meeting.scheduled_for,
            meeting_id=meeting.id,
        )

    await notifier.send_local_notification(
        attendee_id, "New meeting invite", f"You've been invited to {meeting.title}"
    )
    return meeting


async def update_meeting_status(
    meeting_id: str,
    user_id: str,
    status: MeetingStatusUpdate,
    notifier: NotificationService = notification_service,
) -> Meeting:
    """
    Confirm or cancel a meeting on behalf of either participant.

    Cancelling drops the queued reminders for both participants.

    Raises:
        MeetingNotFoundError: no such meeting for this user
        MeetingTransitionError: status change not allowed from the current status
        MeetingServiceError: store failure
    """
    try:
        meeting = await MeetingRepository.get_by_id(meeting_id)
        if meeting is None or not meeting.is_participant(user_id):
            raise MeetingNotFoundError("Meeting not found", user_id=user_id)

        if not meeting.can_transition_to(status):
            raise MeetingTransitionError(
                f"Cannot change a {meeting.status} meeting to {status}",
                user_id=user_id,
                recoverable=False,
            )

        allowed_from = [
            current for current, targets in ALLOWED_MEETING_TRANSITIONS.items() if status in targets
        ]
        updated = await MeetingRepository.update_status(meeting_id, status, allowed_from)

    except DatabaseError as e:
        logger.error("Error updating meeting", meeting_id=meeting_id, user_id=user_id, error=str(e))
        raise MeetingServiceError("Failed to update meeting", user_id=user_id) from e

    if updated is None:
        raise MeetingTransitionError(
            "Meeting changed while updating, reload and try again",
            user_id=user_id,
            recoverable=False,
        )

    logger.info("Meeting status updated", meeting_id=meeting_id, user_id=user_id, status=status)

    if status == "cancelled":
        await notifier.cancel_meeting_reminders(meeting_id)

    return updated.model_copy(
        update={
            "organizer_profile": meeting.organizer_profile,
            "attendee_profile": meeting.attendee_profile,
        }
    )
