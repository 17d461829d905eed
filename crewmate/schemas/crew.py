"""
Crew matching schemas
"""
from pydantic import BaseModel
from typing import Optional
from enum import Enum

from crewmate.schemas.layover import LayoverRead


class ConnectionState(str, Enum):
    """Relationship of a candidate to the requester"""
    CONNECTED = "connected"
    PENDING_OUTGOING = "pending_outgoing"
    PENDING_INCOMING = "pending_incoming"
    NONE = "none"


class CrewCandidate(BaseModel):
    """A crew member whose layover overlaps the query window"""
    user_id: int
    display_name: str
    airline: Optional[str] = None
    base: Optional[str] = None
    layover: LayoverRead
    connection_status: ConnectionState = ConnectionState.NONE
