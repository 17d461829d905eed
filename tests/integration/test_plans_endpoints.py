"""
Integration tests for plans, membership and plan notifications
"""
import pytest
from datetime import timedelta
from httpx import AsyncClient

from crewmate.core.clock import utcnow


def at(hours: float) -> str:
    return (utcnow() + timedelta(hours=hours)).isoformat()


@pytest.mark.asyncio
async def test_invite_only_plan_flow(async_client: AsyncClient, test_user, other_user, auth_headers):
    host, guest = auth_headers(test_user.id), auth_headers(other_user.id)

    r = await async_client.post(
        "/plans",
        json={
            "title": "Rooftop drinks",
            "city": "Bangkok",
            "visibility": "invite_only",
            "itinerary": {"mode": "single", "spot_id": "sky", "spot_name": "Sky Bar", "scheduled_time": at(6)},
        },
        headers=host,
    )
    assert r.status_code == 201, r.text
    plan = r.json()["data"]
    assert plan["attendee_count"] == 1

    r = await async_client.get(f"/plans/{plan['id']}", headers=guest)
    assert r.status_code == 403
    r = await async_client.post(f"/plans/{plan['id']}/join", headers=guest)
    assert r.status_code == 403

    r = await async_client.post(f"/plans/{plan['id']}/invites", json={"user_ids": [other_user.id]}, headers=host)
    assert r.status_code == 200, r.text
    assert r.json()["data"] == {"invited": [other_user.id]}

    count = (await async_client.get("/notifications/unread-count", headers=guest)).json()["data"]
    assert count["plan_notifications"] == 1

    r = await async_client.post(f"/plans/{plan['id']}/join", json={"rsvp_status": "maybe"}, headers=guest)
    assert r.status_code == 200, r.text
    assert r.json()["data"]["rsvp_status"] == "maybe"

    detail = (await async_client.get(f"/plans/{plan['id']}", headers=guest)).json()["data"]
    assert detail["attendee_count"] == 2
    assert {a["user_id"] for a in detail["attendees"]} == {test_user.id, other_user.id}

    r = await async_client.post(f"/plans/{plan['id']}/leave", headers=guest)
    assert r.json()["data"] == {"left": True}
    r = await async_client.post(f"/plans/{plan['id']}/leave", headers=guest)
    assert r.json()["data"] == {"left": False}


@pytest.mark.asyncio
async def test_multi_stop_itinerary_edits(async_client: AsyncClient, test_user, authenticated_headers):
    r = await async_client.post(
        "/plans",
        json={
            "title": "Food tour",
            "city": "Seoul",
            "itinerary": {
                "mode": "multi_stop",
                "stops": [
                    {"spot_id": "a", "spot_name": "Market", "scheduled_time": at(3)},
                    {"spot_id": "b", "spot_name": "Noodles", "scheduled_time": at(4)},
                    {"spot_id": "c", "spot_name": "Dessert", "scheduled_time": at(5)},
                ],
            },
        },
        headers=authenticated_headers,
    )
    assert r.status_code == 201, r.text
    plan = r.json()["data"]
    s0, s1, s2 = [s["id"] for s in plan["stops"]]

    r = await async_client.put(
        f"/plans/{plan['id']}/stops/order", json={"stop_ids": [s2, s0, s1]}, headers=authenticated_headers
    )
    assert r.status_code == 200, r.text
    assert [s["id"] for s in r.json()["data"]] == [s2, s0, s1]

    r = await async_client.delete(f"/plans/{plan['id']}/stops/{s2}", headers=authenticated_headers)
    assert r.status_code == 200, r.text
    assert [(s["id"], s["order"]) for s in r.json()["data"]] == [(s0, 0), (s1, 1)]

    r = await async_client.delete(f"/plans/{plan['id']}/stops/{s1}", headers=authenticated_headers)
    assert r.status_code == 422
    assert r.json()["error"]["error_code"] == "INVALID_STOPS"

    r = await async_client.post(
        f"/plans/{plan['id']}/stops",
        json={"spot_id": "d", "spot_name": "Karaoke", "scheduled_time": at(7)},
        headers=authenticated_headers,
    )
    assert r.status_code == 201, r.text
    assert r.json()["data"]["order"] == 2


@pytest.mark.asyncio
async def test_single_stop_multi_plan_rejected(async_client: AsyncClient, authenticated_headers):
    r = await async_client.post(
        "/plans",
        json={
            "title": "Lonely stop",
            "city": "Seoul",
            "itinerary": {
                "mode": "multi_stop",
                "stops": [{"spot_id": "a", "spot_name": "Market", "scheduled_time": at(3)}],
            },
        },
        headers=authenticated_headers,
    )

    assert r.status_code == 422
    assert r.json()["error"]["error_code"] == "INVALID_STOPS"


@pytest.mark.asyncio
async def test_cancel_notifies_attendees(async_client: AsyncClient, test_user, other_user, auth_headers):
    host, guest = auth_headers(test_user.id), auth_headers(other_user.id)
    r = await async_client.post(
        "/plans",
        json={
            "title": "Museum",
            "city": "Vienna",
            "itinerary": {"mode": "single", "spot_id": "m", "spot_name": "Albertina", "scheduled_time": at(8)},
        },
        headers=host,
    )
    plan_id = r.json()["data"]["id"]
    await async_client.post(f"/plans/{plan_id}/join", headers=guest)

    listed = (await async_client.get("/plans", params={"city": "vienna"}, headers=guest)).json()["data"]
    assert [p["id"] for p in listed] == [plan_id]

    r = await async_client.post(f"/plans/{plan_id}/cancel", headers=host)
    assert r.status_code == 200, r.text
    assert r.json()["data"]["status"] == "canceled"

    notifications = (await async_client.get("/notifications", headers=guest)).json()["data"]
    assert [n["type"] for n in notifications] == ["plan_canceled"]

    r = await async_client.post("/notifications/read-all", headers=guest)
    assert r.json()["data"] == {"updated": 1}
    count = (await async_client.get("/notifications/unread-count", headers=guest)).json()["data"]
    assert count["total"] == 0
