"""
Configuration package for the CrewMate layover engine.
"""

from .settings import (
    Settings,
    Environment,
    LogLevel,
    DatabaseSettings,
    SecuritySettings,
    MatchingSettings,
    PlanSettings,
    EventSettings,
    settings,
    get_settings,
    reload_settings,
)

__all__ = [
    "Settings",
    "Environment",
    "LogLevel",
    "DatabaseSettings",
    "SecuritySettings",
    "MatchingSettings",
    "PlanSettings",
    "EventSettings",
    "settings",
    "get_settings",
    "reload_settings",
]
