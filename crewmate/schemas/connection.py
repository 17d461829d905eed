"""
Connection schemas for API requests/responses
"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Dict, List, Optional
from crewmate.models.connection import RequestStatus


class ConnectionRequestCreate(BaseModel):
    to_user_id: int
    message: Optional[str] = Field(None, max_length=280)


class ConnectionRequestRead(BaseModel):
    id: int
    from_user_id: int
    to_user_id: int
    status: RequestStatus
    message: Optional[str]
    created_at: datetime
    responded_at: Optional[datetime]

    class Config:
        from_attributes = True


class PendingRequests(BaseModel):
    incoming: List[ConnectionRequestRead] = []
    outgoing: List[ConnectionRequestRead] = []


class ConnectionRead(BaseModel):
    id: int
    user_ids: List[int]
    per_user_unread_count: Dict[int, int]
    last_message: Optional[str]
    last_message_at: Optional[datetime]
    created_at: datetime

    @classmethod
    def from_model(cls, connection) -> "ConnectionRead":
        return cls(
            id=connection.id,
            user_ids=sorted(connection.user_ids),
            per_user_unread_count=connection.per_user_unread_count,
            last_message=connection.last_message,
            last_message_at=connection.last_message_at,
            created_at=connection.created_at,
        )


class MessageCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)


class BlockCreate(BaseModel):
    user_id: int


class BlockRead(BaseModel):
    blocked_id: int
    created_at: datetime

    class Config:
        from_attributes = True
