"""
User API endpoints - profile bootstrap and the aggregate profile view
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from crewmate.core.db import get_db
from crewmate.core.dependencies import get_current_user_id
from crewmate.core.jwt import create_access_token
from crewmate.schemas.base import Envelope
from crewmate.schemas.user import UserCreate, UserProfile, UserRead, UserSession
from crewmate.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=Envelope[UserSession], status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db),
):
    """
    Create a crew profile and issue a bearer token for it

    - **display_name**: Name shown to other crew
    - **airline**: Optional airline
    - **base**: Optional home airport code
    """
    user = await UserService(db).create_user(user_data)
    return Envelope(
        status="ok",
        data=UserSession(user=UserRead.model_validate(user), access_token=create_access_token(user.id)),
    )


@router.get("/{user_id}", response_model=Envelope[UserProfile])
async def get_user_profile(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    """Profile with current layover, upcoming layovers and connection ids"""
    profile = await UserService(db).get_profile(user_id)
    return Envelope(status="ok", data=profile)
