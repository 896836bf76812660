from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

from app.models.domain.profile_domain import UserProfile

ConnectionStatus = Literal["pending", "accepted", "rejected"]
ConnectionResponseStatus = Literal["accepted", "rejected"]


class Connection(BaseModel):
    """Directed connection request from requester to requested user."""

    model_config = ConfigDict(extra="ignore")

    id: str
    requester_id: str
    requested_id: str
    status: ConnectionStatus
    created_at: datetime
    requester_profile: UserProfile | None = None
    requested_profile: UserProfile | None = None


class ConnectionOverview(BaseModel):
    """The three connection lists shown to a user."""

    connections: list[Connection]
    pending_requests: list[Connection]
    sent_requests: list[Connection]

    @property
    def counts(self) -> dict[str, int]:
        return {
            "connections": len(self.connections),
            "pending": len(self.pending_requests),
            "sent": len(self.sent_requests),
        }
