# app/models/api/profile_response.py
from pydantic import BaseModel, Field

from app.models.domain.profile_domain import PresenceStatus, UserProfile


class ProfileDirectoryResponse(BaseModel):
    """Response for GET /profiles"""

    profiles: list[UserProfile]
    total: int
    industry: str = Field("all", description="Industry filter that was applied")
    query: str | None = None


class PresenceUpdateResponse(BaseModel):
    """Response for PUT /profiles/me/status"""

    success: bool
    status: PresenceStatus
