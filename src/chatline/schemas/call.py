"""Call log schemas."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from chatline.schemas.common import UserPresence, UserSummary, UTCDateTime

CallType = Literal["voice", "video"]


class CallLogCreate(BaseModel):
    """Schema for recording a call."""

    call_type: CallType
    duration: int = Field(..., ge=0, description="Call length in seconds")


class CallLogResponse(BaseModel):
    """Call log as returned after creation and pushed to the receiver."""

    id: int
    caller_id: int
    receiver_id: int
    call_type: CallType
    duration: int
    created_at: UTCDateTime
    caller: UserSummary
    receiver: UserSummary

    model_config = ConfigDict(from_attributes=True)


class CallHistoryEntry(BaseModel):
    """Call history row from the point of view of the requesting user."""

    id: int
    call_type: CallType
    duration: int
    is_outgoing: bool
    timestamp: UTCDateTime
    other_party: UserPresence | None = None
