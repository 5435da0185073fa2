"""Router wiring for the Chatline REST API.

Composes the endpoint routers into the single router mounted under ``/api``.
Contains no endpoint definitions of its own.
"""
from __future__ import annotations

from typing import Final

from fastapi import APIRouter

from .endpoints import (
    auth_router,
    blocks_router,
    calls_router,
    friends_router,
    groups_router,
    messages_router,
    reactions_router,
    users_router,
)

api_router: Final[APIRouter] = APIRouter()
api_router.include_router(auth_router)
api_router.include_router(users_router)
api_router.include_router(messages_router)
api_router.include_router(friends_router)
api_router.include_router(blocks_router)
api_router.include_router(groups_router)
api_router.include_router(calls_router)
api_router.include_router(reactions_router)

__all__ = ["api_router"]
