"""
Persistence for meetings.
"""

from datetime import datetime

from app.db.helpers import DatabaseError, fetch_all, fetch_one, normalize_row
from app.infrastructure.observability.logging import get_logger
from app.models.domain.meeting_domain import Meeting, MeetingStatusUpdate

logger = get_logger(__name__)

MEETING_COLUMNS = """
    m.id, m.organizer_id, m.attendee_id, m.title, m.description,
    m.scheduled_for, m.duration_minutes, m.location, m.status, m.created_at
"""

_SELECT_WITH_PROFILES = f"""
    SELECT
        {MEETING_COLUMNS},
        to_jsonb(op) AS organizer_profile,
        to_jsonb(ap) AS attendee_profile
    FROM meetings m
    LEFT JOIN profiles op ON op.id = m.organizer_id
    LEFT JOIN profiles ap ON ap.id = m.attendee_id
"""


class MeetingRepositoryError(DatabaseError):
    """More specific exception for meeting persistence failures."""


class MeetingRepository:
    """Queries against the meetings table."""

    @classmethod
    def _row_to_meeting(cls, row: dict | None) -> Meeting | None:
        if not row:
            return None
        return Meeting.model_validate(normalize_row(row))

    @classmethod
    async def list_for_user_between(
        cls, user_id: str, start: datetime, end: datetime
    ) -> list[Meeting]:
        """Meetings the user organizes or attends with start in [start, end], earliest first."""
        rows = await fetch_all(
            _SELECT_WITH_PROFILES
            + """
            WHERE (m.organizer_id = %s OR m.attendee_id = %s)
              AND m.scheduled_for >= %s
              AND m.scheduled_for <= %s
            ORDER BY m.scheduled_for ASC
            """,
            (user_id, user_id, start, end),
        )
        return [cls._row_to_meeting(row) for row in rows]

    @classmethod
    async def get_by_id(cls, meeting_id: str) -> Meeting | None:
        row = await fetch_one(_SELECT_WITH_PROFILES + " WHERE m.id = %s", (meeting_id,))
        return cls._row_to_meeting(row)

    @classmethod
    async def create(
        cls,
        *,
        organizer_id: str,
        attendee_id: str,
        title: str,
        scheduled_for: datetime,
        duration_minutes: int,
        description: str | None = None,
        location: str | None = None,
    ) -> Meeting:
        row = await fetch_one(
            """
            INSERT INTO meetings (
                organizer_id, attendee_id, title, description,
                scheduled_for, duration_minutes, location, status
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, 'pending')
            RETURNING id, organizer_id, attendee_id, title, description,
                      scheduled_for, duration_minutes, location, status, created_at
            """,
            (
                organizer_id,
                attendee_id,
                title,
                description,
                scheduled_for,
                duration_minutes,
                location,
            ),
        )
        if not row:
            raise MeetingRepositoryError("Failed to create meeting", operation="create")

        logger.info(
            "Meeting created",
            organizer_id=organizer_id,
            attendee_id=attendee_id,
            scheduled_for=scheduled_for.isoformat(),
        )
        return cls._row_to_meeting(row)

    @classmethod
    async def update_status(
        cls, meeting_id: str, status: MeetingStatusUpdate, from_statuses: list[str]
    ) -> Meeting | None:
        """
        Compare-and-set status update.

        Returns None if the meeting is no longer in one of from_statuses.
        """
        row = await fetch_one(
            """
            UPDATE meetings
            SET status = %s
            WHERE id = %s AND status = ANY(%s)
            RETURNING id, organizer_id, attendee_id, title, description,
                      scheduled_for, duration_minutes, location, status, created_at
            """,
            (status, meeting_id, list(from_statuses)),
        )
        return cls._row_to_meeting(row)
