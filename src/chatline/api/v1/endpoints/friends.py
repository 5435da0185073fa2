"""Friend request endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from chatline.api.v1.dependencies import CurrentUserDep, SessionDep
from chatline.schemas.common import UserPresence
from chatline.schemas.friend import (
    FriendRequestAction,
    FriendRequestCreate,
    FriendRequestResponse,
)
from chatline.services import relationships

router = APIRouter(prefix="/friends", tags=["friends"])


@router.post("/request", response_model=FriendRequestResponse, status_code=status.HTTP_201_CREATED)
async def send_request(
    payload: FriendRequestCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> FriendRequestResponse:
    request = relationships.send_friend_request(db, current_user, payload.receiver_id)
    return FriendRequestResponse.model_validate(request)


@router.patch("/accept", response_model=FriendRequestResponse)
async def accept_request(
    payload: FriendRequestAction,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> FriendRequestResponse:
    """Accept a pending request; the pair's conversation is opened as well."""
    request = relationships.accept_friend_request(db, current_user, payload.request_id)
    return FriendRequestResponse.model_validate(request)


@router.patch("/reject", response_model=FriendRequestResponse)
async def reject_request(
    payload: FriendRequestAction,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> FriendRequestResponse:
    request = relationships.reject_friend_request(db, current_user, payload.request_id)
    return FriendRequestResponse.model_validate(request)


@router.get("/requests", response_model=list[FriendRequestResponse])
async def pending_requests(current_user: CurrentUserDep, db: SessionDep) -> list[FriendRequestResponse]:
    """Pending requests addressed to the caller."""
    return [
        FriendRequestResponse.model_validate(r)
        for r in relationships.incoming_requests(db, current_user)
    ]


@router.get("/requests/sent", response_model=list[FriendRequestResponse])
async def sent_requests(current_user: CurrentUserDep, db: SessionDep) -> list[FriendRequestResponse]:
    return [
        FriendRequestResponse.model_validate(r)
        for r in relationships.outgoing_requests(db, current_user)
    ]


@router.get("", response_model=list[UserPresence])
async def list_friends(current_user: CurrentUserDep, db: SessionDep) -> list[UserPresence]:
    return [UserPresence.model_validate(u) for u in relationships.list_friends(db, current_user)]
