# app/models/api/message_request.py
from uuid import UUID

from pydantic import BaseModel, Field


class MessageSendRequest(BaseModel):
    receiver_id: UUID
    content: str = Field(..., min_length=1, max_length=4000)
