"""
Integration tests for the live WebSocket feeds

These use Starlette's TestClient so HTTP calls and WebSocket sessions share
one event loop, and with it the process-wide event bus.
"""
import pytest
from datetime import timedelta
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from crewmate.core import db as core_db
from crewmate.core.clock import utcnow
from crewmate.core.events import get_event_bus, plan_topic


async def reset_schema():
    async with core_db.engine.begin() as conn:
        await conn.run_sync(core_db.Base.metadata.drop_all)
        await conn.run_sync(core_db.Base.metadata.create_all)


@pytest.fixture
def client():
    from crewmate.main import app

    with TestClient(app) as client:
        client.portal.call(reset_schema)
        yield client


def sign_up(client: TestClient, name: str) -> dict:
    r = client.post("/users", json={"display_name": name, "airline": "Acme Air", "base": "JFK"})
    assert r.status_code == 201, r.text
    session = r.json()["data"]
    return {"id": session["user"]["id"], "token": session["access_token"]}


def bearer(user: dict) -> dict:
    return {"Authorization": f"Bearer {user['token']}"}


def test_unread_stream_pushes_new_requests(client: TestClient):
    alex, blake = sign_up(client, "Alex"), sign_up(client, "Blake")

    with client.websocket_connect(f"/notifications/stream?token={blake['token']}") as ws:
        first = ws.receive_json()
        assert first == {"total": 0, "pending_requests": 0, "plan_notifications": 0, "messages": 0}

        r = client.post("/connections/requests", json={"to_user_id": blake["id"]}, headers=bearer(alex))
        assert r.status_code == 201, r.text

        update = ws.receive_json()
        assert update["pending_requests"] == 1
        assert update["total"] == 1

    assert get_event_bus().subscriber_count() == 0


def test_unread_stream_accepts_bearer_header(client: TestClient):
    alex = sign_up(client, "Alex")

    with client.websocket_connect("/notifications/stream", headers=bearer(alex)) as ws:
        assert ws.receive_json()["total"] == 0


def test_stream_without_token_is_refused(client: TestClient):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/notifications/stream?token=not-a-token") as ws:
            ws.receive_json()
    assert exc_info.value.code == 1008


def test_plan_stream_follows_attendees(client: TestClient):
    host, guest = sign_up(client, "Alex"), sign_up(client, "Blake")
    r = client.post(
        "/plans",
        json={
            "title": "Night market",
            "city": "Taipei",
            "visibility": "public",
            "itinerary": {
                "mode": "single",
                "spot_id": "raohe",
                "spot_name": "Raohe Street",
                "scheduled_time": (utcnow() + timedelta(hours=5)).isoformat(),
            },
        },
        headers=bearer(host),
    )
    assert r.status_code == 201, r.text
    plan_id = r.json()["data"]["id"]

    with client.websocket_connect(f"/plans/{plan_id}/stream?token={guest['token']}") as ws:
        assert ws.receive_json()["attendee_count"] == 1

        r = client.post(f"/plans/{plan_id}/join", headers=bearer(guest))
        assert r.status_code == 200, r.text

        detail = ws.receive_json()
        assert detail["attendee_count"] == 2
        assert {a["user_id"] for a in detail["attendees"]} == {host["id"], guest["id"]}

    assert get_event_bus().subscriber_count(plan_topic(plan_id)) == 0


def test_plan_stream_refuses_viewers_without_access(client: TestClient):
    host, outsider = sign_up(client, "Alex"), sign_up(client, "Casey")
    r = client.post(
        "/plans",
        json={
            "title": "Crew dinner",
            "city": "Taipei",
            "visibility": "invite_only",
            "itinerary": {
                "mode": "single",
                "spot_id": "din",
                "spot_name": "Din Tai Fung",
                "scheduled_time": (utcnow() + timedelta(hours=5)).isoformat(),
            },
        },
        headers=bearer(host),
    )
    plan_id = r.json()["data"]["id"]

    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect(f"/plans/{plan_id}/stream?token={outsider['token']}") as ws:
            ws.receive_json()
    assert exc_info.value.code == 1008
    assert get_event_bus().subscriber_count(plan_topic(plan_id)) == 0
