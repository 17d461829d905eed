"""
Overlap Matcher - finds crew whose layovers overlap a window in the same city
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crewmate.config import get_settings
from crewmate.core.clock import as_utc
from crewmate.core.exceptions import ErrorCode, ValidationError
from crewmate.models.layover import Layover, LayoverStatus, normalize_city
from crewmate.models.user import User
from crewmate.schemas.crew import CrewCandidate
from crewmate.schemas.layover import LayoverRead
from crewmate.services.connection_service import ConnectionService
from crewmate.services.layover_service import LayoverService

logger = logging.getLogger(__name__)


def windows_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Inclusive interval overlap: touching endpoints count"""
    return a_start <= b_end and a_end >= b_start


def _preference(layover: Layover):
    return (layover.start_date, layover.end_date, layover.id)


class OverlapMatcher:
    """Read-only crew discovery over discoverable layovers"""

    def __init__(self, db: AsyncSession, connections: Optional[ConnectionService] = None):
        self.db = db
        self.connections = connections or ConnectionService(db)
        self.max_results = get_settings().matching.max_results

    async def find_overlapping_crew(
        self,
        requester_id: int,
        city: str,
        start: datetime,
        end: datetime,
    ) -> List[CrewCandidate]:
        """
        Crew members with a discoverable layover in city overlapping [start, end]

        One entry per user, using their earliest overlapping layover.
        Sorted by that layover's start_date, then user id.
        Users blocked in either direction are left out.

        Raises:
            ValidationError: start after end
        """
        start, end = as_utc(start), as_utc(end)
        if start > end:
            raise ValidationError(
                "Query window start must not be after end",
                details={"start": start.isoformat(), "end": end.isoformat()},
                error_code=ErrorCode.INVALID_DATE_RANGE,
            )

        stmt = (
            select(Layover, User)
            .join(User, User.id == Layover.user_id)
            .where(
                Layover.city_key == normalize_city(city),
                Layover.discoverable.is_(True),
                Layover.start_date <= end,
                Layover.end_date >= start,
                Layover.status != LayoverStatus.PAST,
                Layover.user_id != requester_id,
            )
            .order_by(Layover.start_date, Layover.end_date, Layover.id)
        )
        blocked = await self.connections.blocked_user_ids(requester_id)
        if blocked:
            stmt = stmt.where(Layover.user_id.not_in(blocked))
        result = await self.db.execute(stmt)

        chosen: Dict[int, tuple] = {}
        for layover, user in result.all():
            current = chosen.get(user.id)
            if current is None or _preference(layover) < _preference(current[0]):
                chosen[user.id] = (layover, user)

        ordered = sorted(chosen.values(), key=lambda pair: (pair[0].start_date, pair[1].id))
        ordered = ordered[: self.max_results]
        states = await self.connections.connection_states(requester_id, [user.id for _, user in ordered])

        candidates = [
            CrewCandidate(
                user_id=user.id,
                display_name=user.display_name,
                airline=user.airline,
                base=user.base,
                layover=LayoverRead.model_validate(layover),
                connection_status=states[user.id],
            )
            for layover, user in ordered
        ]
        logger.debug(f"Overlap query for user {requester_id} in {city!r} matched {len(candidates)} crew")
        return candidates

    async def find_crew_for_layover(self, requester_id: int, layover_id: int) -> List[CrewCandidate]:
        """Crew overlapping one of the requester's own layovers"""
        layover = await LayoverService(self.db).get_layover(requester_id, layover_id)
        return await self.find_overlapping_crew(
            requester_id, layover.city, layover.start_date, layover.end_date
        )
