from pydantic import BaseModel, Field
from typing import Any, Dict, Optional, Generic, TypeVar
from datetime import datetime
import uuid

from crewmate.core.clock import utcnow

T = TypeVar('T')


class ErrorBody(BaseModel):
    """Standardized error payload carried inside an error envelope"""
    error_code: str
    message: str
    details: Optional[Dict[str, Any]] = None
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=utcnow)


class Envelope(BaseModel, Generic[T]):
    status: str
    data: Optional[T] = None
    error: Optional[ErrorBody] = None


class Message(BaseModel):
    message: str


def ok(data: Any = None) -> Envelope:
    return Envelope(status="ok", data=data)
