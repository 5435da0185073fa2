"""Friend request schemas."""

from typing import Literal

from pydantic import BaseModel, ConfigDict

from chatline.schemas.common import UserSummary, UTCDateTime


class FriendRequestCreate(BaseModel):
    """Schema for sending a friend request."""

    receiver_id: int


class FriendRequestAction(BaseModel):
    """Schema for accepting or rejecting a friend request."""

    request_id: int


class FriendRequestResponse(BaseModel):
    """Friend request as returned by the API."""

    id: int
    sender_id: int
    receiver_id: int
    status: Literal["pending", "accepted", "rejected", "blocked"]
    created_at: UTCDateTime
    updated_at: UTCDateTime
    sender: UserSummary
    receiver: UserSummary

    model_config = ConfigDict(from_attributes=True)
