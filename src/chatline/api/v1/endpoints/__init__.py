# src/chatline/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .auth import router as auth_router
from .blocks import router as blocks_router
from .calls import router as calls_router
from .friends import router as friends_router
from .groups import router as groups_router
from .messages import router as messages_router
from .reactions import router as reactions_router
from .realtime import router as realtime_router
from .users import router as users_router

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
