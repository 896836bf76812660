from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

PresenceStatus = Literal["available", "busy", "offline"]

INDUSTRIES: tuple[str, ...] = (
    "Technology",
    "Finance",
    "Healthcare",
    "Marketing",
    "Design",
    "Consulting",
    "Education",
    "Other",
)

# Directory filter sentinel meaning "every industry"
ALL_INDUSTRIES = "all"


class UserProfile(BaseModel):
    """Professional profile (profiles table). Mutated only by its owner."""

    model_config = ConfigDict(extra="ignore")

    id: str
    email: str
    first_name: str
    last_name: str
    bio: str | None = None
    industry: str | None = None
    job_title: str | None = None
    company: str | None = None
    avatar_url: str | None = None
    status: PresenceStatus = "offline"
    location: str | None = None
    preferred_meeting_times: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

