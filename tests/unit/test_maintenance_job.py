"""
Unit tests for the clock-driven maintenance pass
"""
import pytest
from datetime import timedelta

from crewmate.core.clock import utcnow
from crewmate.models.layover import LayoverStatus
from crewmate.models.plan import PlanStatus
from crewmate.schemas.layover import LayoverCreate
from crewmate.schemas.plan import PlanCreate, SinglePayload
from crewmate.services.layover_service import LayoverService
from crewmate.services.maintenance_job import MaintenanceJob
from crewmate.services.plan_service import PlanService


@pytest.mark.asyncio
async def test_run_once_refreshes_layovers_and_archives_plans(session_factory, db_session, test_user):
    now = utcnow()
    layover = await LayoverService(db_session).create_layover(
        test_user.id,
        LayoverCreate(city="Dubai", start_date=now + timedelta(hours=1), end_date=now + timedelta(hours=3)),
    )
    plan = await PlanService(db_session).create_plan(
        test_user.id,
        PlanCreate(
            title="Desert drive",
            city="Dubai",
            itinerary=SinglePayload(spot_id="d1", spot_name="Dunes", scheduled_time=now + timedelta(hours=2)),
        ),
    )

    job = MaintenanceJob(session_factory=session_factory, interval_seconds=0)
    stats = await job.run_once(now=now + timedelta(days=1))

    assert stats["status"] == "success"
    assert stats["layovers_refreshed"] == 1
    assert stats["plans_archived"] == 1

    async with session_factory() as session:
        assert (await LayoverService(session).get_layover(test_user.id, layover.id)).status == LayoverStatus.PAST
        assert (await PlanService(session).get_plan(plan.id)).status == PlanStatus.COMPLETED


@pytest.mark.asyncio
async def test_overlapping_pass_is_skipped(session_factory):
    job = MaintenanceJob(session_factory=session_factory, interval_seconds=0)
    job.is_running = True

    assert (await job.run_once())["status"] == "skipped"


@pytest.mark.asyncio
async def test_zero_interval_never_starts_loop(session_factory):
    job = MaintenanceJob(session_factory=session_factory, interval_seconds=0)

    job.start()
    await job.stop()

    assert job._task is None
