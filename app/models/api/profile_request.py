# app/models/api/profile_request.py
from pydantic import BaseModel, Field, field_validator

from app.models.domain.profile_domain import INDUSTRIES, PresenceStatus


class ProfileUpdateRequest(BaseModel):
    """Owner edits to their profile. Omitted fields are left unchanged."""

    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    bio: str | None = Field(None, max_length=1000)
    job_title: str | None = Field(None, max_length=150)
    company: str | None = Field(None, max_length=150)
    industry: str | None = None
    location: str | None = Field(None, max_length=150)
    avatar_url: str | None = Field(None, max_length=500)
    interests: list[str] | None = Field(None, max_length=30)
    preferred_meeting_times: list[str] | None = Field(None, max_length=20)

    @field_validator("industry")
    @classmethod
    def validate_industry(cls, v):
        if v is not None and v not in INDUSTRIES:
            raise ValueError(f"Industry must be one of: {', '.join(INDUSTRIES)}")
        return v

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class PresenceUpdateRequest(BaseModel):
    status: PresenceStatus
