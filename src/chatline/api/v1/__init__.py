# src/chatline/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    auth_router,
    blocks_router,
    calls_router,
    friends_router,
    groups_router,
    messages_router,
    reactions_router,
    realtime_router,
    users_router,
)

__all__ = [
    "auth_router",
    "blocks_router",
    "calls_router",
    "friends_router",
    "groups_router",
    "messages_router",
    "reactions_router",
    "realtime_router",
    "users_router",
]
