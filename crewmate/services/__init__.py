# Business logic services

from .layover_service import LayoverService, derive_status, validate_window
from .connection_service import ConnectionService
from .overlap_matcher import OverlapMatcher, windows_overlap
from .plan_service import PlanService
from .notification_service import NotificationService, watch_unread_count
from .user_service import UserService
from .maintenance_job import MaintenanceJob

__all__ = [
    "LayoverService",
    "derive_status",
    "validate_window",
    "ConnectionService",
    "OverlapMatcher",
    "windows_overlap",
    "PlanService",
    "NotificationService",
    "watch_unread_count",
    "UserService",
    "MaintenanceJob",
]
