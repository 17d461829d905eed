"""
Unit tests for crew overlap matching
"""
import pytest
from datetime import timedelta

from crewmate.core.clock import utcnow
from crewmate.core.exceptions import ValidationError
from crewmate.schemas.crew import ConnectionState
from crewmate.schemas.layover import LayoverCreate
from crewmate.services.connection_service import ConnectionService
from crewmate.services.layover_service import LayoverService
from crewmate.services.overlap_matcher import OverlapMatcher, windows_overlap


def day(n: int):
    base = utcnow().replace(hour=12, minute=0, second=0, microsecond=0)
    return base + timedelta(days=n)


async def add_layover(db, user_id, city, start, end, discoverable=True):
    return await LayoverService(db).create_layover(
        user_id,
        LayoverCreate(city=city, start_date=start, end_date=end, discoverable=discoverable),
    )


def test_windows_overlap_is_inclusive():
    assert windows_overlap(day(1), day(3), day(3), day(5))
    assert windows_overlap(day(2), day(4), day(1), day(3))
    assert not windows_overlap(day(1), day(2), day(3), day(4))


@pytest.mark.asyncio
async def test_overlapping_crew_found_from_either_side(db_session, make_user):
    """X (day1-3) and Y (day2-4) see each other; Z (day5-6) is excluded"""
    x, y, z = await make_user("X"), await make_user("Y"), await make_user("Z")
    await add_layover(db_session, x.id, "NYC", day(1), day(3))
    await add_layover(db_session, y.id, "NYC", day(2), day(4))
    await add_layover(db_session, z.id, "NYC", day(5), day(6))
    matcher = OverlapMatcher(db_session)

    from_x = await matcher.find_overlapping_crew(x.id, "NYC", day(1), day(3))
    from_y = await matcher.find_overlapping_crew(y.id, "NYC", day(2), day(4))

    assert [c.user_id for c in from_x] == [y.id]
    assert [c.user_id for c in from_y] == [x.id]


@pytest.mark.asyncio
async def test_requester_and_hidden_layovers_never_returned(db_session, make_user):
    me, hidden, visible = await make_user("Me"), await make_user("Hidden"), await make_user("Visible")
    await add_layover(db_session, me.id, "Paris", day(1), day(3))
    await add_layover(db_session, hidden.id, "Paris", day(1), day(3), discoverable=False)
    await add_layover(db_session, visible.id, "Paris", day(2), day(3))

    results = await OverlapMatcher(db_session).find_overlapping_crew(me.id, "Paris", day(1), day(3))

    assert [c.user_id for c in results] == [visible.id]


@pytest.mark.asyncio
async def test_touching_endpoints_match(db_session, make_user):
    me, other = await make_user("Me"), await make_user("Other")
    await add_layover(db_session, other.id, "Lima", day(3), day(5))

    results = await OverlapMatcher(db_session).find_overlapping_crew(me.id, "Lima", day(1), day(3))

    assert [c.user_id for c in results] == [other.id]


@pytest.mark.asyncio
async def test_city_matching_ignores_case_and_spacing(db_session, make_user):
    me, other = await make_user("Me"), await make_user("Other")
    await add_layover(db_session, other.id, "  New   York ", day(1), day(2))

    results = await OverlapMatcher(db_session).find_overlapping_crew(me.id, "new york", day(1), day(2))

    assert len(results) == 1
    assert results[0].layover.city == "New   York"


@pytest.mark.asyncio
async def test_one_candidate_per_user_earliest_layover_wins(db_session, make_user):
    me, other = await make_user("Me"), await make_user("Other")
    later = await add_layover(db_session, other.id, "Tokyo", day(3), day(6))
    earlier = await add_layover(db_session, other.id, "Tokyo", day(2), day(4))

    results = await OverlapMatcher(db_session).find_overlapping_crew(me.id, "Tokyo", day(1), day(7))

    assert len(results) == 1
    assert results[0].layover.id == earlier.id
    assert results[0].layover.id != later.id


@pytest.mark.asyncio
async def test_results_sorted_by_layover_start_then_user(db_session, make_user):
    me = await make_user("Me")
    a, b, c = await make_user("A"), await make_user("B"), await make_user("C")
    await add_layover(db_session, c.id, "Rome", day(1), day(4))
    await add_layover(db_session, a.id, "Rome", day(2), day(4))
    await add_layover(db_session, b.id, "Rome", day(1), day(2))

    results = await OverlapMatcher(db_session).find_overlapping_crew(me.id, "Rome", day(1), day(4))

    assert [r.user_id for r in results] == [b.id, c.id, a.id]


@pytest.mark.asyncio
async def test_past_layovers_do_not_match(db_session, make_user):
    me, other = await make_user("Me"), await make_user("Other")
    await add_layover(db_session, other.id, "Oslo", day(-5), day(-3))

    results = await OverlapMatcher(db_session).find_overlapping_crew(me.id, "Oslo", day(-6), day(-2))

    assert results == []


@pytest.mark.asyncio
async def test_candidates_annotated_with_connection_state(db_session, make_user):
    me = await make_user("Me")
    friend, asked, asker, stranger = (
        await make_user("Friend"), await make_user("Asked"), await make_user("Asker"), await make_user("Stranger"),
    )
    for user in (friend, asked, asker, stranger):
        await add_layover(db_session, user.id, "Doha", day(1), day(2))

    connections = ConnectionService(db_session)
    request = await connections.send_connection_request(me.id, friend.id)
    await connections.accept_connection_request(request.id, friend.id)
    await connections.send_connection_request(me.id, asked.id)
    await connections.send_connection_request(asker.id, me.id)

    results = await OverlapMatcher(db_session).find_overlapping_crew(me.id, "Doha", day(1), day(2))
    states = {c.user_id: c.connection_status for c in results}

    assert states == {
        friend.id: ConnectionState.CONNECTED,
        asked.id: ConnectionState.PENDING_OUTGOING,
        asker.id: ConnectionState.PENDING_INCOMING,
        stranger.id: ConnectionState.NONE,
    }


@pytest.mark.asyncio
async def test_inverted_window_rejected(db_session, test_user):
    with pytest.raises(ValidationError):
        await OverlapMatcher(db_session).find_overlapping_crew(test_user.id, "NYC", day(3), day(1))


@pytest.mark.asyncio
async def test_no_matches_returns_empty_list(db_session, test_user):
    assert await OverlapMatcher(db_session).find_overlapping_crew(test_user.id, "Nowhere", day(1), day(2)) == []


@pytest.mark.asyncio
async def test_find_crew_for_own_layover(db_session, make_user):
    me, other = await make_user("Me"), await make_user("Other")
    mine = await add_layover(db_session, me.id, "Dubai", day(1), day(3))
    await add_layover(db_session, other.id, "Dubai", day(2), day(5))

    results = await OverlapMatcher(db_session).find_crew_for_layover(me.id, mine.id)

    assert [c.user_id for c in results] == [other.id]


@pytest.mark.asyncio
async def test_blocked_users_hidden_both_ways(db_session, make_user):
    me, blocked, other = await make_user("Me"), await make_user("Blocked"), await make_user("Other")
    for user in (me, blocked, other):
        await add_layover(db_session, user.id, "Nairobi", day(1), day(2))
    connections = ConnectionService(db_session)
    await connections.block_user(me.id, blocked.id)
    matcher = OverlapMatcher(db_session)

    from_me = await matcher.find_overlapping_crew(me.id, "Nairobi", day(1), day(2))
    from_blocked = await matcher.find_overlapping_crew(blocked.id, "Nairobi", day(1), day(2))

    assert [c.user_id for c in from_me] == [other.id]
    assert [c.user_id for c in from_blocked] == [other.id]

    await connections.unblock_user(me.id, blocked.id)
    restored = await matcher.find_overlapping_crew(me.id, "Nairobi", day(1), day(2))
    assert {c.user_id for c in restored} == {blocked.id, other.id}
