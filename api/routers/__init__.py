"""
API Routers for Zenly Platform Service

This module exports all available routers for the FastAPI application.
"""

from . import (
    auth_router,
    users_router,
    journals_router,
    moods_router,
    forum_router,
    resources_router,
    admin_router,
    activity_router
)

__all__ = [
    "auth_router",
    "users_router",
    "journals_router",
    "moods_router",
    "forum_router",
    "resources_router",
    "admin_router",
    "activity_router"
]
