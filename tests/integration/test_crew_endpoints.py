"""
Integration tests for layovers and crew discovery
"""
import pytest
from datetime import timedelta
from httpx import AsyncClient

from crewmate.core.clock import utcnow


async def post_layover(client, headers, city, start_days, end_days, **extra):
    now = utcnow()
    r = await client.post(
        "/layovers",
        json={
            "city": city,
            "start_date": (now + timedelta(days=start_days)).isoformat(),
            "end_date": (now + timedelta(days=end_days)).isoformat(),
            **extra,
        },
        headers=headers,
    )
    assert r.status_code == 201, r.text
    return r.json()["data"]


@pytest.mark.asyncio
async def test_overlapping_crew_found_with_connection_status(
    async_client: AsyncClient, test_user, other_user, auth_headers
):
    mine = await post_layover(async_client, auth_headers(test_user.id), "Paris", 1, 3)
    await post_layover(async_client, auth_headers(other_user.id), "paris ", 2, 4)

    r = await async_client.post(
        "/connections/requests", json={"to_user_id": other_user.id}, headers=auth_headers(test_user.id)
    )
    assert r.status_code == 201, r.text

    r = await async_client.get(f"/crew/layovers/{mine['id']}", headers=auth_headers(test_user.id))
    assert r.status_code == 200, r.text
    candidates = r.json()["data"]
    assert [c["user_id"] for c in candidates] == [other_user.id]
    assert candidates[0]["display_name"] == "Blake"
    assert candidates[0]["connection_status"] == "pending_outgoing"


@pytest.mark.asyncio
async def test_hidden_layover_not_matched(async_client: AsyncClient, test_user, other_user, auth_headers):
    theirs = await post_layover(async_client, auth_headers(other_user.id), "Rome", 1, 3)
    r = await async_client.post(
        f"/layovers/{theirs['id']}/discoverable", json={"discoverable": False}, headers=auth_headers(other_user.id)
    )
    assert r.status_code == 200, r.text

    now = utcnow()
    r = await async_client.get(
        "/crew/overlaps",
        params={"city": "Rome", "start": now.isoformat(), "end": (now + timedelta(days=5)).isoformat()},
        headers=auth_headers(test_user.id),
    )
    assert r.status_code == 200, r.text
    assert r.json()["data"] == []


@pytest.mark.asyncio
async def test_inverted_layover_window_rejected(async_client: AsyncClient, authenticated_headers):
    now = utcnow()
    r = await async_client.post(
        "/layovers",
        json={
            "city": "Madrid",
            "start_date": (now + timedelta(days=3)).isoformat(),
            "end_date": (now + timedelta(days=1)).isoformat(),
        },
        headers=authenticated_headers,
    )

    assert r.status_code == 422
    assert r.json()["error"]["error_code"] == "INVALID_DATE_RANGE"


@pytest.mark.asyncio
async def test_layover_lifecycle(async_client: AsyncClient, authenticated_headers):
    layover = await post_layover(async_client, authenticated_headers, "Oslo", 1, 2)

    r = await async_client.patch(
        f"/layovers/{layover['id']}", json={"notes": "crew hotel"}, headers=authenticated_headers
    )
    assert r.status_code == 200, r.text
    assert r.json()["data"]["notes"] == "crew hotel"

    r = await async_client.delete(f"/layovers/{layover['id']}", headers=authenticated_headers)
    assert r.status_code == 200, r.text

    r = await async_client.get("/layovers", headers=authenticated_headers)
    assert r.json()["data"] == []
