"""
Layover schemas for API requests/responses
"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from crewmate.models.layover import LayoverStatus


class LayoverCreate(BaseModel):
    """Schema for publishing a travel window"""
    city: str = Field(..., min_length=1, max_length=120)
    area: Optional[str] = Field(None, max_length=120)
    start_date: datetime
    end_date: datetime
    discoverable: bool = True
    notes: Optional[str] = Field(None, max_length=2000)


class LayoverUpdate(BaseModel):
    """Schema for editing a layover; only provided fields change"""
    city: Optional[str] = Field(None, min_length=1, max_length=120)
    area: Optional[str] = Field(None, max_length=120)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    discoverable: Optional[bool] = None
    notes: Optional[str] = Field(None, max_length=2000)


class DiscoverableToggle(BaseModel):
    discoverable: bool


class LayoverRead(BaseModel):
    id: int
    user_id: int
    city: str
    area: Optional[str]
    start_date: datetime
    end_date: datetime
    status: LayoverStatus
    discoverable: bool
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
