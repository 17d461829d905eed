# API endpoints and routers

from .users_endpoints import router as users_router
from .layovers_endpoints import router as layovers_router
from .crew_endpoints import router as crew_router
from .connections_endpoints import router as connections_router
from .plans_endpoints import router as plans_router
from .notifications_endpoints import router as notifications_router
from .health_endpoints import router as health_router

__all__ = [
    "users_router",
    "layovers_router",
    "crew_router",
    "connections_router",
    "plans_router",
    "notifications_router",
    "health_router",
]
