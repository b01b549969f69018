"""
Client library for the Zenly Platform Service
"""

from .session import ClientSession, SessionStore, MemorySessionStore, FileSessionStore
from .api_client import ZenlyAPIClient, APIError, SessionExpiredError
from .engagement import ResourceListState, EngagementSync
from .likes import LikeToggler, LikeTransition, LikeState

__all__ = [
    "ClientSession",
    "SessionStore",
    "MemorySessionStore",
    "FileSessionStore",
    "ZenlyAPIClient",
    "APIError",
    "SessionExpiredError",
    "ResourceListState",
    "EngagementSync",
    "LikeToggler",
    "LikeTransition",
    "LikeState",
]
