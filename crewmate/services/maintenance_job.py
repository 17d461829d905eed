"""
Maintenance job - clock-driven transitions

- layovers move upcoming -> current -> past as their windows pass
- active plans become completed once past the archive grace period
"""
import asyncio
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from crewmate.core.clock import utcnow
from crewmate.core.db import SessionLocal
from crewmate.services.layover_service import LayoverService
from crewmate.services.plan_service import PlanService

logger = logging.getLogger(__name__)


class MaintenanceJob:
    """
    Runs the clock-driven transitions once per interval.
    start()/stop() tie the loop to the application lifespan.
    """

    def __init__(self, session_factory: async_sessionmaker = SessionLocal, interval_seconds: int = 300):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.is_running = False
        self._task: Optional[asyncio.Task] = None

    async def run_once(self, now: Optional[datetime] = None) -> dict:
        """
        Execute one maintenance pass

        Returns:
            Pass statistics
        """
        if self.is_running:
            logger.warning("Maintenance pass already running, skipping")
            return {"status": "skipped", "reason": "already_running"}

        self.is_running = True
        started = utcnow()
        now = now or started
        try:
            async with self.session_factory() as session:
                layovers = await LayoverService(session).refresh_statuses(now)
                plans = await PlanService(session).archive_expired_plans(now)

            duration = (utcnow() - started).total_seconds()
            logger.info(
                f"Maintenance pass completed: {layovers} layover(s) refreshed, {plans} plan(s) archived",
                extra={"layovers_refreshed": layovers, "plans_archived": plans},
            )
            return {
                "status": "success",
                "layovers_refreshed": layovers,
                "plans_archived": plans,
                "duration_seconds": duration,
                "timestamp": now.isoformat(),
            }
        finally:
            self.is_running = False

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception as e:
                # Keep the loop alive; the next pass retries
                logger.error(f"Maintenance pass failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self._task is None and self.interval_seconds > 0:
            self._task = asyncio.create_task(self._loop())
            logger.info(f"Maintenance job started (every {self.interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Maintenance job stopped")
