"""
Layover Service - owns each user's travel windows
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from crewmate.core.clock import as_utc, utcnow
from crewmate.core.db import store_operation
from crewmate.core.exceptions import ErrorCode, NotFoundError, ValidationError
from crewmate.models.layover import Layover, LayoverStatus, normalize_city
from crewmate.models.user import User
from crewmate.schemas.layover import LayoverCreate, LayoverUpdate

logger = logging.getLogger(__name__)


def derive_status(start_date: datetime, end_date: datetime, now: datetime) -> LayoverStatus:
    """Status of a window relative to now (inclusive bounds)"""
    if end_date < now:
        return LayoverStatus.PAST
    if start_date <= now:
        return LayoverStatus.CURRENT
    return LayoverStatus.UPCOMING


def validate_window(start_date: datetime, end_date: datetime) -> None:
    if start_date >= end_date:
        raise ValidationError(
            "Layover start_date must be before end_date",
            details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
            error_code=ErrorCode.INVALID_DATE_RANGE,
        )


class LayoverService:
    """Layover CRUD scoped to the owning user"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @store_operation("create_layover")
    async def create_layover(self, user_id: int, data: LayoverCreate) -> Layover:
        """
        Publish a travel window for a user

        Raises:
            NotFoundError: unknown user
            ValidationError: start_date not before end_date
        """
        start_date, end_date = as_utc(data.start_date), as_utc(data.end_date)
        validate_window(start_date, end_date)
        if await self.db.get(User, user_id) is None:
            raise NotFoundError("User", user_id)

        layover = Layover(
            user_id=user_id,
            city=data.city.strip(),
            city_key=normalize_city(data.city),
            area=data.area,
            start_date=start_date,
            end_date=end_date,
            status=derive_status(start_date, end_date, utcnow()),
            discoverable=data.discoverable,
            notes=data.notes,
        )
        self.db.add(layover)
        await self.db.commit()
        logger.info(f"Layover {layover.id} created for user {user_id} in {layover.city}")
        return layover

    async def get_layover(self, user_id: int, layover_id: int) -> Layover:
        stmt = select(Layover).where(Layover.id == layover_id, Layover.user_id == user_id)
        result = await self.db.execute(stmt)
        layover = result.scalar_one_or_none()
        if layover is None:
            raise NotFoundError("Layover", layover_id)
        return layover

    async def list_layovers(
        self,
        user_id: int,
        include_past: bool = False,
    ) -> List[Layover]:
        """User's layovers ordered by start_date"""
        stmt = select(Layover).where(Layover.user_id == user_id)
        if not include_past:
            stmt = stmt.where(Layover.status != LayoverStatus.PAST)
        stmt = stmt.order_by(Layover.start_date, Layover.id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_current_layover(self, user_id: int) -> Optional[Layover]:
        stmt = (
            select(Layover)
            .where(Layover.user_id == user_id, Layover.status == LayoverStatus.CURRENT)
            .order_by(Layover.start_date, Layover.id)
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    @store_operation("update_layover")
    async def update_layover(self, user_id: int, layover_id: int, data: LayoverUpdate) -> Layover:
        layover = await self.get_layover(user_id, layover_id)
        changes = data.model_dump(exclude_unset=True)

        start_date = as_utc(changes.pop("start_date", None)) or layover.start_date
        end_date = as_utc(changes.pop("end_date", None)) or layover.end_date
        validate_window(start_date, end_date)

        city = changes.pop("city", None)
        if city is not None:
            layover.city = city.strip()
            layover.city_key = normalize_city(layover.city)
        for field, value in changes.items():
            # Explicit nulls on non-nullable fields leave them unchanged
            if field == "discoverable" and value is None:
                continue
            setattr(layover, field, value)

        layover.start_date = start_date
        layover.end_date = end_date
        layover.status = derive_status(start_date, end_date, utcnow())

        await self.db.commit()
        return layover

    @store_operation("set_discoverable")
    async def set_discoverable(self, user_id: int, layover_id: int, discoverable: bool) -> Layover:
        layover = await self.get_layover(user_id, layover_id)
        layover.discoverable = discoverable
        await self.db.commit()
        logger.info(f"Layover {layover_id} discoverable={discoverable}")
        return layover

    @store_operation("delete_layover")
    async def delete_layover(self, user_id: int, layover_id: int) -> None:
        layover = await self.get_layover(user_id, layover_id)
        await self.db.delete(layover)
        await self.db.commit()
        logger.info(f"Layover {layover_id} deleted by user {user_id}")

    @store_operation("refresh_layover_statuses")
    async def refresh_statuses(self, now: Optional[datetime] = None) -> int:
        """
        Move layovers to their clock-derived status (natural expiry)

        Returns:
            Number of layovers whose status changed
        """
        now = as_utc(now) or utcnow()
        expired = await self.db.execute(
            update(Layover)
            .where(Layover.status != LayoverStatus.PAST, Layover.end_date < now)
            .values(status=LayoverStatus.PAST)
        )
        started = await self.db.execute(
            update(Layover)
            .where(
                Layover.status == LayoverStatus.UPCOMING,
                Layover.start_date <= now,
                Layover.end_date >= now,
            )
            .values(status=LayoverStatus.CURRENT)
        )
        await self.db.commit()
        changed = (expired.rowcount or 0) + (started.rowcount or 0)
        if changed:
            logger.info(f"Refreshed status of {changed} layover(s)")
        return changed

    @store_operation("purge_past_layovers")
    async def purge_past_layovers(self, user_id: int) -> int:
        """Delete a user's past layovers; returns rows removed"""
        result = await self.db.execute(
            delete(Layover).where(Layover.user_id == user_id, Layover.status == LayoverStatus.PAST)
        )
        await self.db.commit()
        return result.rowcount or 0
