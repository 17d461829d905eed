from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, List, Optional
from crewmate.models.notification import NotificationType


class NotificationRead(BaseModel):
    id: int
    user_id: int
    type: NotificationType
    payload: Optional[Dict[str, Any]]
    read: bool
    created_at: datetime
    read_at: Optional[datetime]

    class Config:
        from_attributes = True


class MarkReadRequest(BaseModel):
    notification_ids: List[int] = Field(..., min_length=1)


class UnreadBreakdown(BaseModel):
    """Badge total and the three sources it is summed from"""
    pending_requests: int = 0
    plan_notifications: int = 0
    messages: int = 0

    @property
    def total(self) -> int:
        return self.pending_requests + self.plan_notifications + self.messages


class UnreadCountResponse(BaseModel):
    total: int
    pending_requests: int
    plan_notifications: int
    messages: int
