from pydantic import BaseModel, Field
from typing import List, Optional

from crewmate.schemas.layover import LayoverRead


class UserCreate(BaseModel):
    display_name: str = Field(min_length=1, max_length=120)
    airline: Optional[str] = Field(None, max_length=120)
    base: Optional[str] = Field(None, max_length=16)


class UserRead(BaseModel):
    id: int
    display_name: str
    airline: Optional[str] = None
    base: Optional[str] = None

    class Config:
        from_attributes = True


class UserProfile(UserRead):
    """User aggregate view: profile, travel windows and connections"""
    current_layover: Optional[LayoverRead] = None
    upcoming_layovers: List[LayoverRead] = []
    connections: List[int] = []


class UserSession(BaseModel):
    """A newly created user and a bearer token for them"""
    user: UserRead
    access_token: str
    token_type: str = "bearer"
