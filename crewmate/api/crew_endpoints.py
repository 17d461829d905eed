"""
Crew discovery endpoints - overlapping layovers in the same city
"""
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from crewmate.core.db import get_db
from crewmate.core.dependencies import get_current_user_id
from crewmate.schemas.base import Envelope
from crewmate.schemas.crew import CrewCandidate
from crewmate.services.overlap_matcher import OverlapMatcher

router = APIRouter(prefix="/crew", tags=["crew"])


@router.get("/overlaps", response_model=Envelope[list[CrewCandidate]])
async def find_overlapping_crew(
    city: str = Query(..., min_length=1),
    start: datetime = Query(...),
    end: datetime = Query(...),
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    """
    Crew with a discoverable layover in **city** overlapping [**start**, **end**]

    Each candidate carries its connection status relative to the caller.
    """
    candidates = await OverlapMatcher(db).find_overlapping_crew(current_user_id, city, start, end)
    return Envelope(status="ok", data=candidates)


@router.get("/layovers/{layover_id}", response_model=Envelope[list[CrewCandidate]])
async def find_crew_for_layover(
    layover_id: int,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    """Crew overlapping one of the caller's own layovers"""
    candidates = await OverlapMatcher(db).find_crew_for_layover(current_user_id, layover_id)
    return Envelope(status="ok", data=candidates)
