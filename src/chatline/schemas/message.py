"""Message-related Pydantic schemas."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from chatline.schemas.common import Pagination, UserSummary, UTCDateTime
from chatline.schemas.reaction import ReactionResponse

MessageStatus = Literal["sent", "delivered", "read"]


class MessageResponse(BaseModel):
    """Message as returned by the API and pushed over the live channel."""

    id: int
    conversation_id: int | None
    group_id: int | None
    sender_id: int
    body: str | None
    attachment_url: str | None
    attachment_name: str | None
    attachment_type: str | None
    status: MessageStatus
    edited: bool
    created_at: UTCDateTime
    updated_at: UTCDateTime
    sender: UserSummary
    reactions: list[ReactionResponse] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class MessageEdit(BaseModel):
    """Schema for editing a message body."""

    message: str = Field(..., min_length=1, max_length=10_000)


class MessageDelete(BaseModel):
    """Schema selecting whose view a deletion applies to."""

    delete_for: Literal["me", "all"] = "me"


class StatusUpdate(BaseModel):
    """Schema for advancing delivery status."""

    status: MessageStatus


class ConversationStatusResult(BaseModel):
    """Outcome of a conversation-wide status update."""

    conversation_id: int
    status: MessageStatus
    updated: int


class ConversationSummary(BaseModel):
    """Inbox entry for a direct conversation."""

    id: int
    participant: UserSummary
    last_message: MessageResponse | None
    unread_count: int
    updated_at: UTCDateTime


class InboxPage(BaseModel):
    """Paginated inbox."""

    conversations: list[ConversationSummary]
    pagination: Pagination
