"""
Health check endpoint: database reachability, live subscriptions and error counters
"""
from fastapi import APIRouter
from sqlalchemy import text
import logging

from crewmate.config import get_settings
from crewmate.core.clock import utcnow
from crewmate.core.db import SessionLocal
from crewmate.core.error_handlers import error_handler
from crewmate.core.events import get_event_bus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Overall status is healthy when the database answers"""
    settings = get_settings()
    details = {"database": {"status": "unknown"}}

    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
        details["database"] = {"status": "healthy"}
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        details["database"] = {"status": "unhealthy", "error": str(e)}

    details["events"] = {"subscriptions": get_event_bus().subscriber_count()}

    return {
        "status": "healthy" if details["database"]["status"] == "healthy" else "unhealthy",
        "version": settings.app_version,
        "timestamp": utcnow().isoformat(),
        "details": details,
        "error_statistics": error_handler.get_error_statistics(),
    }
