# app/models/api/connection_request.py
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.domain.connection_domain import ConnectionResponseStatus


class ConnectionCreateRequest(BaseModel):
    requested_id: UUID = Field(..., description="Profile id of the person to connect with")


class ConnectionRespondRequest(BaseModel):
    status: ConnectionResponseStatus
