"""
User Service - crew profiles and the aggregate profile view
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from crewmate.core.db import store_operation
from crewmate.core.exceptions import NotFoundError
from crewmate.models.layover import LayoverStatus
from crewmate.models.user import User
from crewmate.schemas.layover import LayoverRead
from crewmate.schemas.user import UserCreate, UserProfile, UserRead
from crewmate.services.connection_service import ConnectionService
from crewmate.services.layover_service import LayoverService

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    @store_operation("create_user")
    async def create_user(self, data: UserCreate) -> User:
        user = User(
            display_name=data.display_name.strip(),
            airline=data.airline,
            base=data.base.upper() if data.base else None,
        )
        self.db.add(user)
        await self.db.commit()
        logger.info(f"User {user.id} created")
        return user

    async def get_user(self, user_id: int) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    async def get_profile(self, user_id: int) -> UserProfile:
        """Profile with current layover, upcoming layovers and connection ids"""
        user = await self.get_user(user_id)
        layovers = await LayoverService(self.db).list_layovers(user_id)
        current = next((l for l in layovers if l.status == LayoverStatus.CURRENT), None)
        connected = await ConnectionService(self.db).connected_user_ids(user_id)

        return UserProfile(
            **UserRead.model_validate(user).model_dump(),
            current_layover=LayoverRead.model_validate(current) if current else None,
            upcoming_layovers=[
                LayoverRead.model_validate(l) for l in layovers if l.status == LayoverStatus.UPCOMING
            ],
            connections=sorted(connected),
        )
