"""
Notification API endpoints - plan notifications and the unread badge
"""
from fastapi import APIRouter, Depends, Query, WebSocket, status
from sqlalchemy.ext.asyncio import AsyncSession

from crewmate.api.streaming import stream_updates
from crewmate.core.db import SessionLocal, get_db
from crewmate.core.dependencies import get_current_user_id, get_websocket_user_id
from crewmate.schemas.base import Envelope
from crewmate.schemas.notification import MarkReadRequest, NotificationRead, UnreadCountResponse
from crewmate.services.notification_service import NotificationService, watch_unread_count

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=Envelope[list[NotificationRead]])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    notifications = await NotificationService(db).list_notifications(current_user_id, unread_only, limit)
    return Envelope(status="ok", data=[NotificationRead.model_validate(n) for n in notifications])


@router.get("/unread-count", response_model=Envelope[UnreadCountResponse])
async def get_unread_count(
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    """
    Badge total and its sources

    - **pending_requests**: incoming connection requests
    - **plan_notifications**: unread plan notifications
    - **messages**: unread messages across connections
    """
    breakdown = await NotificationService(db).unread_breakdown(current_user_id)
    return Envelope(
        status="ok",
        data=UnreadCountResponse(total=breakdown.total, **breakdown.model_dump()),
    )


@router.post("/read", response_model=Envelope[dict])
async def mark_read(
    request: MarkReadRequest,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    """Mark notifications read; foreign, unknown and already-read ids are ignored"""
    updated = await NotificationService(db).mark_read(current_user_id, request.notification_ids)
    return Envelope(status="ok", data={"updated": updated})


@router.post("/read-all", response_model=Envelope[dict])
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    updated = await NotificationService(db).mark_all_read(current_user_id)
    return Envelope(status="ok", data={"updated": updated})


@router.websocket("/stream")
async def stream_unread_count(websocket: WebSocket):
    """
    Live unread badge

    Sends the current breakdown on connect and a fresh one after every
    change. Authenticate with a Bearer header or `?token=`.
    """
    user_id = await get_websocket_user_id(websocket)
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await stream_updates(
        websocket,
        watch_unread_count(SessionLocal, user_id),
        lambda breakdown: UnreadCountResponse(total=breakdown.total, **breakdown.model_dump()),
    )
