"""
Layover API endpoints - the caller's travel windows
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from crewmate.core.db import get_db
from crewmate.core.dependencies import get_current_user_id
from crewmate.schemas.base import Envelope, Message
from crewmate.schemas.layover import DiscoverableToggle, LayoverCreate, LayoverRead, LayoverUpdate
from crewmate.services.layover_service import LayoverService

router = APIRouter(prefix="/layovers", tags=["layovers"])


@router.post("", response_model=Envelope[LayoverRead], status_code=status.HTTP_201_CREATED)
async def create_layover(
    layover_data: LayoverCreate,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    """
    Publish a travel window

    - **city**: Layover city (matched case-insensitively)
    - **start_date** / **end_date**: Window bounds; start must be before end
    - **discoverable**: Whether other crew can find this layover
    """
    layover = await LayoverService(db).create_layover(current_user_id, layover_data)
    return Envelope(status="ok", data=LayoverRead.model_validate(layover))


@router.get("", response_model=Envelope[list[LayoverRead]])
async def list_layovers(
    include_past: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    layovers = await LayoverService(db).list_layovers(current_user_id, include_past)
    return Envelope(status="ok", data=[LayoverRead.model_validate(l) for l in layovers])


@router.patch("/{layover_id}", response_model=Envelope[LayoverRead])
async def update_layover(
    layover_id: int,
    changes: LayoverUpdate,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    layover = await LayoverService(db).update_layover(current_user_id, layover_id, changes)
    return Envelope(status="ok", data=LayoverRead.model_validate(layover))


@router.post("/{layover_id}/discoverable", response_model=Envelope[LayoverRead])
async def set_discoverable(
    layover_id: int,
    toggle: DiscoverableToggle,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    layover = await LayoverService(db).set_discoverable(current_user_id, layover_id, toggle.discoverable)
    return Envelope(status="ok", data=LayoverRead.model_validate(layover))


@router.delete("/{layover_id}", response_model=Envelope[Message])
async def delete_layover(
    layover_id: int,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    await LayoverService(db).delete_layover(current_user_id, layover_id)
    return Envelope(status="ok", data=Message(message="Layover deleted"))
