"""
Profile directory and owner profile updates.

Service layer returns domain models only - API layer handles HTTP concerns.
"""

from collections.abc import Iterable
from typing import Any

from app.db.helpers import DatabaseError, with_db_retry
from app.infrastructure.observability.logging import get_logger
from app.models.domain.profile_domain import ALL_INDUSTRIES, PresenceStatus, UserProfile
from app.repositories.profile_repository import ProfileRepository

logger = get_logger(__name__)


class ProfileServiceError(Exception):
    """Custom exception for profile service operations."""

    def __init__(self, message: str, user_id: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.user_id = user_id
        self.recoverable = recoverable


def _matches_query(profile: UserProfile, query: str) -> bool:
    fields = (
        profile.first_name,
        profile.last_name,
        profile.job_title,
        profile.company,
        profile.industry,
    )
    return any(query in value.lower() for value in fields if value)


def filter_profiles(
    profiles: Iterable[UserProfile], query: str | None = None, industry: str | None = None
) -> list[UserProfile]:
    """
    Narrow a directory listing by free text and industry.

    Text matches case-insensitively on name, job title, company or industry.
    An industry of None or "all" disables the industry filter.
    """
    filtered = list(profiles)

    needle = (query or "").strip().lower()
    if needle:
        filtered = [p for p in filtered if _matches_query(p, needle)]

    if industry and industry != ALL_INDUSTRIES:
        filtered = [p for p in filtered if p.industry == industry]

    return filtered


@with_db_retry(max_retries=2, base_delay=0.1)
async def _load_directory(current_user_id: str, industry: str | None) -> list[UserProfile]:
    return await ProfileRepository.list_directory(current_user_id, industry)


async def list_directory(
    current_user_id: str, industry: str | None = None, query: str | None = None
) -> list[UserProfile]:
    """
    Profiles other than the caller's, most recently updated first.

    Raises:
        ProfileServiceError: the directory couldn't be loaded
    """
    store_industry = industry if industry and industry != ALL_INDUSTRIES else None
    try:
        profiles = await _load_directory(current_user_id, store_industry)
    except DatabaseError as e:
        logger.error("Failed to load profiles", user_id=current_user_id, error=str(e))
        raise ProfileServiceError("Failed to load profiles", user_id=current_user_id) from e

    result = filter_profiles(profiles, query=query)
    logger.info(
        "Directory loaded",
        user_id=current_user_id,
        industry=store_industry,
        total=len(profiles),
        matched=len(result),
    )
    return result


async def get_profile(user_id: str) -> UserProfile | None:
    try:
        return await ProfileRepository.get_by_id(user_id)
    except DatabaseError as e:
        logger.error("Failed to load profile", user_id=user_id, error=str(e))
        raise ProfileServiceError("Failed to load profile", user_id=user_id) from e


async def get_profiles_by_ids(user_ids: Iterable[str]) -> list[UserProfile]:
    """
    Batch lookup for embedding counterpart profiles. Ids with no profile are
    simply absent from the result.

    Store failures propagate as DatabaseError so callers can fail the whole
    aggregate rather than return a partial one.
    """
    ids = list(dict.fromkeys(user_ids))
    if not ids:
        return []
    return await ProfileRepository.get_by_ids(ids)


async def update_profile(user_id: str, changes: dict[str, Any]) -> UserProfile:
    """
    Apply owner edits to a profile.

    Raises:
        ProfileServiceError: nothing to change, profile missing, or store failure
    """
    if not changes:
        raise ProfileServiceError(
            "No profile fields to update", user_id=user_id, recoverable=False
        )

    try:
        profile = await ProfileRepository.update_fields(user_id, changes)
    except DatabaseError as e:
        logger.error("Failed to update profile", user_id=user_id, error=str(e))
        raise ProfileServiceError("Failed to update profile", user_id=user_id) from e

    if profile is None:
        raise ProfileServiceError("Profile not found", user_id=user_id, recoverable=False)
    return profile


async def update_presence(user_id: str, status: PresenceStatus) -> bool:
    """Set the user's presence flag. Returns False if the profile doesn't exist."""
    try:
        updated = await ProfileRepository.update_status(user_id, status)
    except DatabaseError as e:
        logger.error("Failed to update status", user_id=user_id, status=status, error=str(e))
        raise ProfileServiceError("Failed to update status", user_id=user_id) from e

    if updated:
        logger.info("Presence updated", user_id=user_id, status=status)
    return updated
