"""
Profile API Routes
Directory browsing with industry/search filters, profile editing and presence.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.auth.verify import current_user_id
from app.infrastructure.observability.logging import get_logger
from app.models.api.profile_request import PresenceUpdateRequest, ProfileUpdateRequest
from app.models.api.profile_response import PresenceUpdateResponse, ProfileDirectoryResponse
from app.models.domain.profile_domain import ALL_INDUSTRIES, UserProfile
from app.services.profile_service import (
    ProfileServiceError,
    get_profile,
    list_directory,
    update_presence,
    update_profile,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("", response_model=ProfileDirectoryResponse)
async def browse_profiles(
    industry: str = Query(ALL_INDUSTRIES, description="Industry name or 'all'"),
    q: str | None = Query(None, max_length=100, description="Search name, title, company"),
    user_id: str = Depends(current_user_id),
):
    """Everyone except the caller, most recently active first."""
    try:
        profiles = await list_directory(user_id, industry=industry, query=q)
    except ProfileServiceError as e:
        logger.error("Error browsing profiles", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load profiles"
        )

    return ProfileDirectoryResponse(
        profiles=profiles, total=len(profiles), industry=industry, query=q
    )


@router.get("/me", response_model=UserProfile)
async def get_my_profile(user_id: str = Depends(current_user_id)):
    try:
        profile = await get_profile(user_id)
    except ProfileServiceError as e:
        logger.error("Error loading own profile", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load profile"
        )

    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return profile


@router.patch("/me", response_model=UserProfile)
async def update_my_profile(
    request: ProfileUpdateRequest, user_id: str = Depends(current_user_id)
):
    changes = request.changes()
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No changes provided")

    try:
        return await update_profile(user_id, changes)
    except ProfileServiceError as e:
        if not e.recoverable:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        logger.error("Error updating profile", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update profile"
        )


@router.put("/me/status", response_model=PresenceUpdateResponse)
async def set_presence(request: PresenceUpdateRequest, user_id: str = Depends(current_user_id)):
    """Set available/busy/offline."""
    try:
        updated = await update_presence(user_id, request.status)
    except ProfileServiceError as e:
        logger.error("Error updating presence", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update status"
        )
    return PresenceUpdateResponse(success=updated, status=request.status)


@router.get("/{profile_id}", response_model=UserProfile)
async def get_profile_by_id(profile_id: UUID, user_id: str = Depends(current_user_id)):
    try:
        profile = await get_profile(str(profile_id))
    except ProfileServiceError as e:
        logger.error("Error loading profile", user_id=user_id, profile_id=str(profile_id), error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load profile"
        )

    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return profile
