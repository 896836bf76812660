# app/models/api/connection_response.py
from pydantic import BaseModel

from app.models.domain.connection_domain import Connection, ConnectionOverview


class ConnectionCounts(BaseModel):
    connections: int
    pending: int
    sent: int


class ConnectionOverviewResponse(BaseModel):
    """Response for GET /connections"""

    connections: list[Connection]
    pending_requests: list[Connection]
    sent_requests: list[Connection]
    counts: ConnectionCounts

    @classmethod
    def from_domain(cls, overview: ConnectionOverview) -> "ConnectionOverviewResponse":
        return cls(
            connections=overview.connections,
            pending_requests=overview.pending_requests,
            sent_requests=overview.sent_requests,
            counts=ConnectionCounts(**overview.counts),
        )


class ConnectionActionResponse(BaseModel):
    """Response for POST /connections and POST /connections/{id}/respond"""

    success: bool
    message: str
    connection: Connection
