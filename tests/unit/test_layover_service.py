"""
Unit tests for layover windows and their clock-derived status
"""
import pytest
from datetime import timedelta

from crewmate.core.clock import utcnow
from crewmate.core.exceptions import ErrorCode, NotFoundError, ValidationError
from crewmate.models.layover import LayoverStatus
from crewmate.schemas.layover import LayoverCreate, LayoverUpdate
from crewmate.services.layover_service import LayoverService, derive_status


def window(start_days: float, end_days: float, city: str = "Tokyo", **extra) -> LayoverCreate:
    now = utcnow()
    return LayoverCreate(
        city=city,
        start_date=now + timedelta(days=start_days),
        end_date=now + timedelta(days=end_days),
        **extra,
    )


def test_derive_status_bounds():
    now = utcnow()
    hour = timedelta(hours=1)

    assert derive_status(now + hour, now + 2 * hour, now) == LayoverStatus.UPCOMING
    assert derive_status(now, now + hour, now) == LayoverStatus.CURRENT
    assert derive_status(now - hour, now, now) == LayoverStatus.CURRENT
    assert derive_status(now - 2 * hour, now - hour, now) == LayoverStatus.PAST


@pytest.mark.asyncio
async def test_create_layover_sets_status_and_city_key(db_session, test_user):
    service = LayoverService(db_session)

    upcoming = await service.create_layover(test_user.id, window(1, 3, city="  Tokyo "))
    current = await service.create_layover(test_user.id, window(-1, 1))

    assert upcoming.status == LayoverStatus.UPCOMING
    assert upcoming.city == "Tokyo"
    assert upcoming.city_key == "tokyo"
    assert current.status == LayoverStatus.CURRENT
    assert (await service.get_current_layover(test_user.id)).id == current.id


@pytest.mark.asyncio
async def test_inverted_window_rejected(db_session, test_user):
    with pytest.raises(ValidationError) as exc_info:
        await LayoverService(db_session).create_layover(test_user.id, window(3, 1))

    assert exc_info.value.error_code == ErrorCode.INVALID_DATE_RANGE


@pytest.mark.asyncio
async def test_unknown_user_rejected(db_session, engine):
    with pytest.raises(NotFoundError):
        await LayoverService(db_session).create_layover(424242, window(1, 2))


@pytest.mark.asyncio
async def test_list_hides_past_unless_requested(db_session, test_user):
    service = LayoverService(db_session)
    past = await service.create_layover(test_user.id, window(-5, -3))
    later = await service.create_layover(test_user.id, window(4, 6))
    sooner = await service.create_layover(test_user.id, window(1, 2))

    assert [l.id for l in await service.list_layovers(test_user.id)] == [sooner.id, later.id]
    assert [l.id for l in await service.list_layovers(test_user.id, include_past=True)] == [
        past.id, sooner.id, later.id,
    ]


@pytest.mark.asyncio
async def test_update_revalidates_window(db_session, test_user):
    service = LayoverService(db_session)
    layover = await service.create_layover(test_user.id, window(1, 3))

    with pytest.raises(ValidationError):
        await service.update_layover(
            test_user.id, layover.id, LayoverUpdate(end_date=layover.start_date - timedelta(hours=1))
        )

    updated = await service.update_layover(test_user.id, layover.id, LayoverUpdate(city="Osaka", notes="hotel near station"))
    assert updated.city_key == "osaka"
    assert updated.notes == "hotel near station"


@pytest.mark.asyncio
async def test_explicit_nulls_keep_required_fields(db_session, test_user):
    service = LayoverService(db_session)
    layover = await service.create_layover(test_user.id, window(1, 3, city="Seoul", area="Myeongdong"))

    updated = await service.update_layover(
        test_user.id, layover.id, LayoverUpdate(city=None, discoverable=None, area=None, notes="late checkout")
    )

    assert updated.city == "Seoul"
    assert updated.city_key == "seoul"
    assert updated.discoverable is True
    assert updated.area is None
    assert updated.notes == "late checkout"


@pytest.mark.asyncio
async def test_owner_scoping(db_session, test_user, other_user):
    service = LayoverService(db_session)
    layover = await service.create_layover(test_user.id, window(1, 3))

    with pytest.raises(NotFoundError):
        await service.set_discoverable(other_user.id, layover.id, False)
    with pytest.raises(NotFoundError):
        await service.delete_layover(other_user.id, layover.id)

    hidden = await service.set_discoverable(test_user.id, layover.id, False)
    assert hidden.discoverable is False

    await service.delete_layover(test_user.id, layover.id)
    with pytest.raises(NotFoundError):
        await service.get_layover(test_user.id, layover.id)


@pytest.mark.asyncio
async def test_refresh_statuses_follows_clock(db_session, test_user):
    service = LayoverService(db_session)
    layover = await service.create_layover(test_user.id, window(1, 2))

    assert await service.refresh_statuses(now=layover.start_date + timedelta(hours=1)) == 1
    assert (await service.get_layover(test_user.id, layover.id)).status == LayoverStatus.CURRENT

    assert await service.refresh_statuses(now=layover.end_date + timedelta(hours=1)) == 1
    assert (await service.get_layover(test_user.id, layover.id)).status == LayoverStatus.PAST
    assert await service.purge_past_layovers(test_user.id) == 1
