"""
Plan schemas for API requests/responses

The itinerary payload is a tagged union on `mode`: a single spot/time or an
ordered list of stops. Exactly one shape can be expressed.
"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Literal, Optional, Union, Annotated
from crewmate.models.plan import PlanMode, PlanStatus, PlanVisibility, RSVPStatus


class StopInput(BaseModel):
    spot_id: str = Field(..., min_length=1, max_length=120)
    spot_name: str = Field(..., min_length=1, max_length=200)
    scheduled_time: datetime


class SinglePayload(BaseModel):
    mode: Literal["single"] = "single"
    spot_id: str = Field(..., min_length=1, max_length=120)
    spot_name: str = Field(..., min_length=1, max_length=200)
    scheduled_time: datetime


class MultiStopPayload(BaseModel):
    mode: Literal["multi_stop"] = "multi_stop"
    stops: List[StopInput]


PlanPayload = Annotated[Union[SinglePayload, MultiStopPayload], Field(discriminator="mode")]


class PlanCreate(BaseModel):
    title: str = Field(..., max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    city: str = Field(..., min_length=1, max_length=120)
    area: Optional[str] = Field(None, max_length=120)
    visibility: PlanVisibility = PlanVisibility.PUBLIC
    itinerary: PlanPayload
    invitee_ids: List[int] = []


class PlanUpdate(BaseModel):
    """Host edits; only provided fields change"""
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    visibility: Optional[PlanVisibility] = None
    scheduled_time: Optional[datetime] = None  # single mode only


class JoinRequest(BaseModel):
    rsvp_status: RSVPStatus = RSVPStatus.GOING
    stops_attending: Optional[List[int]] = None


class InviteRequest(BaseModel):
    user_ids: List[int] = Field(..., min_length=1)


class ReorderRequest(BaseModel):
    stop_ids: List[int] = Field(..., min_length=1)


class StopRead(BaseModel):
    id: int
    spot_id: str
    spot_name: str
    scheduled_time: datetime
    order: int

    class Config:
        from_attributes = True


class AttendeeRead(BaseModel):
    user_id: int
    rsvp_status: RSVPStatus
    all_stops: bool
    stops_attending: Optional[List[int]] = None
    joined_at: datetime

    class Config:
        from_attributes = True


class PlanRead(BaseModel):
    id: int
    host_user_id: int
    title: str
    description: Optional[str]
    city: str
    area: Optional[str]
    visibility: PlanVisibility
    mode: PlanMode
    spot_id: Optional[str]
    spot_name: Optional[str]
    scheduled_time: datetime
    attendee_count: int
    status: PlanStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PlanDetail(PlanRead):
    stops: List[StopRead] = []
    attendees: List[AttendeeRead] = []
