"""Block list schemas."""

from pydantic import BaseModel, ConfigDict, Field

from chatline.schemas.common import UserSummary, UTCDateTime


class BlockRequest(BaseModel):
    """Schema for blocking a user."""

    user_id: int
    reason: str | None = Field(None, max_length=500)


class UnblockRequest(BaseModel):
    """Schema for lifting a block."""

    user_id: int


class BlockResponse(BaseModel):
    """Block record as returned by the API."""

    id: int
    blocker_id: int
    blocked_id: int
    reason: str | None
    created_at: UTCDateTime
    blocked: UserSummary

    model_config = ConfigDict(from_attributes=True)
