"""
ORM models for the layover engine.

Importing this package registers every mapper on the shared declarative Base.
"""

from .user import User
from .layover import Layover, LayoverStatus, normalize_city
from .connection import Block, Connection, ConnectionRequest, RequestStatus, ordered_pair
from .plan import (
    Plan,
    PlanStop,
    PlanAttendee,
    PlanInvite,
    PlanMode,
    PlanStatus,
    PlanVisibility,
    RSVPStatus,
)
from .notification import Notification, NotificationType

__all__ = [
    "User",
    "Layover",
    "LayoverStatus",
    "normalize_city",
    "Block",
    "Connection",
    "ConnectionRequest",
    "RequestStatus",
    "ordered_pair",
    "Plan",
    "PlanStop",
    "PlanAttendee",
    "PlanInvite",
    "PlanMode",
    "PlanStatus",
    "PlanVisibility",
    "RSVPStatus",
    "Notification",
    "NotificationType",
]
