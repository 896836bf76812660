"""
Meeting API Routes
Day agenda, scheduling and confirm/cancel.
"""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.auth.verify import current_user_id
from app.infrastructure.observability.logging import get_logger
from app.models.api.meeting_request import MeetingCreateRequest, MeetingStatusRequest
from app.models.api.meeting_response import MeetingActionResponse, MeetingDayResponse
from app.services.meeting_service import (
    MeetingNotFoundError,
    MeetingServiceError,
    MeetingTransitionError,
    create_meeting,
    list_meetings_for_day,
    update_meeting_status,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/meetings", tags=["meetings"])


@router.get("", response_model=MeetingDayResponse)
async def get_meetings_for_day(
    day: date = Query(..., description="Local calendar day (YYYY-MM-DD)"),
    tz: str = Query("UTC", description="IANA timezone the day is interpreted in"),
    user_id: str = Depends(current_user_id),
):
    try:
        meetings = await list_meetings_for_day(user_id, day, tz)
    except MeetingServiceError as e:
        if not e.recoverable:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        logger.error("Error listing meetings", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load meetings"
        )

    return MeetingDayResponse(day=day, timezone=tz, meetings=meetings)


@router.post("", response_model=MeetingActionResponse, status_code=status.HTTP_201_CREATED)
async def schedule_meeting(request: MeetingCreateRequest, user_id: str = Depends(current_user_id)):
    try:
        meeting = await create_meeting(
            organizer_id=user_id,
            attendee_id=str(request.attendee_id),
            title=request.title,
            scheduled_for=request.scheduled_for,
            duration_minutes=request.duration_minutes,
            description=request.description,
            location=request.location,
        )
    except MeetingNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except MeetingServiceError as e:
        if not e.recoverable:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        logger.error("Error scheduling meeting", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create meeting"
        )

    return MeetingActionResponse(success=True, message="Meeting request sent", meeting=meeting)


@router.post("/{meeting_id}/status", response_model=MeetingActionResponse)
async def change_meeting_status(
    meeting_id: UUID, request: MeetingStatusRequest, user_id: str = Depends(current_user_id)
):
    try:
        meeting = await update_meeting_status(str(meeting_id), user_id, request.status)
    except MeetingNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except MeetingTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except MeetingServiceError as e:
        logger.error("Error updating meeting", user_id=user_id, meeting_id=str(meeting_id), error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update meeting"
        )

    return MeetingActionResponse(success=True, message=f"Meeting {meeting.status}", meeting=meeting)
