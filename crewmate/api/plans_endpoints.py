"""
Plan API endpoints - meetups, itineraries and attendees
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, status
from sqlalchemy.ext.asyncio import AsyncSession

from crewmate.api.streaming import stream_updates
from crewmate.core.db import SessionLocal, get_db
from crewmate.core.dependencies import get_current_user_id, get_websocket_user_id
from crewmate.schemas.base import Envelope
from crewmate.schemas.plan import (
    AttendeeRead,
    InviteRequest,
    JoinRequest,
    PlanCreate,
    PlanDetail,
    PlanRead,
    PlanUpdate,
    ReorderRequest,
    StopInput,
    StopRead,
)
from crewmate.services.plan_service import PlanService, watch_plan

router = APIRouter(prefix="/plans", tags=["plans"])


@router.post("", response_model=Envelope[PlanDetail], status_code=status.HTTP_201_CREATED)
async def create_plan(
    plan_data: PlanCreate,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    """
    Host a plan

    - **itinerary.mode = single**: one spot and time
    - **itinerary.mode = multi_stop**: two or more stops, in visiting order
    - **invitee_ids**: users added to the invite list and notified
    """
    detail = await PlanService(db).create_plan(current_user_id, plan_data)
    return Envelope(status="ok", data=detail)


@router.get("", response_model=Envelope[list[PlanRead]])
async def list_visible_plans(
    city: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    """Active plans in **city** visible to the caller, soonest first"""
    plans = await PlanService(db).list_visible_plans(current_user_id, city)
    return Envelope(status="ok", data=[PlanRead.model_validate(p) for p in plans])


@router.get("/{plan_id}", response_model=Envelope[PlanDetail])
async def get_plan(
    plan_id: int,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    detail = await PlanService(db).get_plan_detail(plan_id, current_user_id)
    return Envelope(status="ok", data=detail)


@router.patch("/{plan_id}", response_model=Envelope[PlanRead])
async def update_plan(
    plan_id: int,
    changes: PlanUpdate,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    plan = await PlanService(db).update_plan(plan_id, current_user_id, changes)
    return Envelope(status="ok", data=PlanRead.model_validate(plan))


@router.post("/{plan_id}/join", response_model=Envelope[AttendeeRead])
async def join_plan(
    plan_id: int,
    join: Optional[JoinRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    """Join a plan the caller can see; joining twice is a no-op"""
    join = join or JoinRequest()
    attendee = await PlanService(db).join_plan(plan_id, current_user_id, join.rsvp_status, join.stops_attending)
    return Envelope(status="ok", data=AttendeeRead.model_validate(attendee))


@router.post("/{plan_id}/leave", response_model=Envelope[dict])
async def leave_plan(
    plan_id: int,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    left = await PlanService(db).leave_plan(plan_id, current_user_id)
    return Envelope(status="ok", data={"left": left})


@router.post("/{plan_id}/rsvp", response_model=Envelope[AttendeeRead])
async def update_rsvp(
    plan_id: int,
    rsvp: JoinRequest,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    attendee = await PlanService(db).update_rsvp(plan_id, current_user_id, rsvp.rsvp_status, rsvp.stops_attending)
    return Envelope(status="ok", data=AttendeeRead.model_validate(attendee))


@router.post("/{plan_id}/invites", response_model=Envelope[dict])
async def invite_users(
    plan_id: int,
    invite: InviteRequest,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    invited = await PlanService(db).invite_users(plan_id, current_user_id, invite.user_ids)
    return Envelope(status="ok", data={"invited": invited})


@router.put("/{plan_id}/stops/order", response_model=Envelope[list[StopRead]])
async def reorder_stops(
    plan_id: int,
    reorder: ReorderRequest,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    """Replace the stop order; **stop_ids** must list every stop exactly once"""
    stops = await PlanService(db).reorder_stops(plan_id, current_user_id, reorder.stop_ids)
    return Envelope(status="ok", data=[StopRead.model_validate(s) for s in stops])


@router.post("/{plan_id}/stops", response_model=Envelope[StopRead], status_code=status.HTTP_201_CREATED)
async def add_stop(
    plan_id: int,
    stop: StopInput,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    new_stop = await PlanService(db).add_stop(plan_id, current_user_id, stop)
    return Envelope(status="ok", data=StopRead.model_validate(new_stop))


@router.delete("/{plan_id}/stops/{stop_id}", response_model=Envelope[list[StopRead]])
async def remove_stop(
    plan_id: int,
    stop_id: int,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    stops = await PlanService(db).remove_stop(plan_id, current_user_id, stop_id)
    return Envelope(status="ok", data=[StopRead.model_validate(s) for s in stops])


@router.post("/{plan_id}/cancel", response_model=Envelope[PlanRead])
async def cancel_plan(
    plan_id: int,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    plan = await PlanService(db).cancel_plan(plan_id, current_user_id)
    return Envelope(status="ok", data=PlanRead.model_validate(plan))


@router.websocket("/{plan_id}/stream")
async def stream_plan(websocket: WebSocket, plan_id: int):
    """Live plan detail for anyone allowed to view the plan"""
    user_id = await get_websocket_user_id(websocket)
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await stream_updates(websocket, watch_plan(SessionLocal, plan_id, user_id))
