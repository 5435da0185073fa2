"""Reaction schemas."""

from pydantic import BaseModel, ConfigDict, Field

from chatline.schemas.common import UserSummary, UTCDateTime


class ReactionCreate(BaseModel):
    """Schema for reacting to a message."""

    message_id: int
    emoji: str = Field(..., min_length=1, max_length=32)


class ReactionResponse(BaseModel):
    """Reaction as returned by the API."""

    id: int
    message_id: int
    user_id: int
    emoji: str
    created_at: UTCDateTime
    user: UserSummary

    model_config = ConfigDict(from_attributes=True)
