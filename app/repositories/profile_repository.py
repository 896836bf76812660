"""
Persistence for professional profiles.

Directory listing, single and batch lookups, and owner-scoped field updates.
"""

from typing import Any

from psycopg import sql

from app.db.helpers import DatabaseError, execute_query, fetch_all, fetch_one, normalize_row
from app.infrastructure.observability.logging import get_logger
from app.models.domain.profile_domain import PresenceStatus, UserProfile

logger = get_logger(__name__)

# Columns an owner may change through update_fields()
EDITABLE_PROFILE_COLUMNS = frozenset(
    {
        "first_name",
        "last_name",
        "bio",
        "job_title",
        "company",
        "industry",
        "location",
        "avatar_url",
        "interests",
        "preferred_meeting_times",
    }
)


class ProfileRepositoryError(DatabaseError):
    """More specific exception for profile persistence failures."""


class ProfileRepository:
    """Queries against the profiles table."""

    @classmethod
    def _row_to_profile(cls, row: dict | None) -> UserProfile | None:
        if not row:
            return None
        return UserProfile.model_validate(normalize_row(row))

    @classmethod
    async def list_directory(
        cls, exclude_user_id: str, industry: str | None = None
    ) -> list[UserProfile]:
        """Everyone except the caller, most recently updated first."""
        if industry:
            query = """
                SELECT * FROM profiles
                WHERE id <> %s AND industry = %s
                ORDER BY updated_at DESC
            """
            params: tuple = (exclude_user_id, industry)
        else:
            query = """
                SELECT * FROM profiles
                WHERE id <> %s
                ORDER BY updated_at DESC
            """
            params = (exclude_user_id,)

        rows = await fetch_all(query, params)
        return [cls._row_to_profile(row) for row in rows]

    @classmethod
    async def get_by_id(cls, user_id: str) -> UserProfile | None:
        row = await fetch_one("SELECT * FROM profiles WHERE id = %s", (user_id,))
        return cls._row_to_profile(row)

    @classmethod
    async def get_by_ids(cls, user_ids: list[str]) -> list[UserProfile]:
        """Batch lookup; ids with no profile are simply absent from the result."""
        if not user_ids:
            return []
        rows = await fetch_all(
            "SELECT * FROM profiles WHERE id = ANY(%s::uuid[])", (list(user_ids),)
        )
        return [cls._row_to_profile(row) for row in rows]

    @classmethod
    async def update_fields(cls, user_id: str, changes: dict[str, Any]) -> UserProfile | None:
        """Update owner-editable columns and bump updated_at. Returns None if no such profile."""
        unknown = set(changes) - EDITABLE_PROFILE_COLUMNS
        if unknown:
            raise ProfileRepositoryError(
                f"Columns not editable: {', '.join(sorted(unknown))}",
                operation="update_fields",
                recoverable=False,
            )
        if not changes:
            raise ProfileRepositoryError(
                "No profile fields to update", operation="update_fields", recoverable=False
            )

        assignments = sql.SQL(", ").join(
            sql.SQL("{} = {}").format(sql.Identifier(column), sql.Placeholder())
            for column in changes
        )
        query = sql.SQL(
            "UPDATE profiles SET {assignments}, updated_at = NOW() WHERE id = %s RETURNING *"
        ).format(assignments=assignments)

        row = await fetch_one(query, (*changes.values(), user_id))
        if row:
            logger.info("Profile updated", user_id=user_id, fields=sorted(changes))
        return cls._row_to_profile(row)

    @classmethod
    async def update_status(cls, user_id: str, status: PresenceStatus) -> bool:
        affected = await execute_query(
            "UPDATE profiles SET status = %s, updated_at = NOW() WHERE id = %s",
            (status, user_id),
        )
        return affected > 0
