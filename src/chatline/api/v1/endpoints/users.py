"""User directory endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from chatline.api.v1.dependencies import CurrentUserDep, SessionDep
from chatline.schemas.common import UserPresence
from chatline.services import accounts

router = APIRouter(tags=["users"])


@router.get("/users", response_model=list[UserPresence])
async def list_users(current_user: CurrentUserDep, db: SessionDep) -> list[UserPresence]:
    """List everyone except the caller and users blocked in either direction."""
    users = accounts.list_contacts(db, current_user)
    return [UserPresence.model_validate(user) for user in users]
