"""
FastAPI application setup.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
from contextlib import asynccontextmanager

from crewmate.config import get_settings
from crewmate.core.db import create_schema, engine
from crewmate.core.error_handlers import setup_error_handlers
from crewmate.core.logging import configure_logging
from crewmate.middleware import RequestContextMiddleware
from crewmate.services.maintenance_job import MaintenanceJob

settings = get_settings()

configure_logging(settings.log_level.value)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: optional schema bootstrap, then the maintenance loop.
    Shutdown: stop the loop and dispose the engine pool.
    """
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    if settings.create_schema_on_startup:
        await create_schema()
        logger.info("Database schema created")

    maintenance = MaintenanceJob(interval_seconds=settings.maintenance_interval_seconds)
    maintenance.start()
    app.state.maintenance = maintenance
    logger.info("Application startup complete")

    try:
        yield
    finally:
        logger.info("Shutting down application")
        await maintenance.stop()
        await engine.dispose()
        logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        FastAPI: Configured application instance
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        **settings.get_cors_config()
    )
    app.add_middleware(RequestContextMiddleware)

    setup_error_handlers(app)

    from crewmate.api import (
        users_router,
        layovers_router,
        crew_router,
        connections_router,
        plans_router,
        notifications_router,
        health_router,
    )
    app.include_router(users_router)
    app.include_router(layovers_router)
    app.include_router(crew_router)
    app.include_router(connections_router)
    app.include_router(plans_router)
    app.include_router(notifications_router)
    app.include_router(health_router)

    return app


# Create application instance
app = create_app()


@app.get("/")
async def root():
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "status": "running"
    }
