"""Group conversation schemas."""

from pydantic import BaseModel, ConfigDict, Field

from chatline.schemas.common import Pagination, UserPresence, UserSummary, UTCDateTime
from chatline.schemas.message import MessageResponse


class GroupCreate(BaseModel):
    """Schema for creating a group conversation."""

    name: str = Field(..., max_length=128)
    members: list[int] = Field(..., description="User ids to add; the creator is added as admin")


class GroupMemberAction(BaseModel):
    """Schema naming the member to add or remove."""

    user_id: int


class GroupUpdate(BaseModel):
    """Partial group update; at least one field must be present."""

    name: str | None = Field(None, min_length=1, max_length=128)
    new_admin_id: int | None = None


class GroupMemberResponse(BaseModel):
    """Member entry of a group."""

    user_id: int
    joined_at: UTCDateTime
    user: UserPresence

    model_config = ConfigDict(from_attributes=True)


class GroupResponse(BaseModel):
    """Group conversation as returned by the API."""

    id: int
    name: str
    admin_id: int
    created_at: UTCDateTime
    updated_at: UTCDateTime
    admin: UserSummary
    members: list[GroupMemberResponse]

    model_config = ConfigDict(from_attributes=True)


class GroupListEntry(GroupResponse):
    """Group with its latest message and the caller's unread count."""

    last_message: MessageResponse | None = None
    unread_count: int = 0


class GroupListPage(BaseModel):
    """Paginated list of the caller's groups."""

    groups: list[GroupListEntry]
    pagination: Pagination


class GroupMessagePage(BaseModel):
    """Paginated group message history, newest first."""

    messages: list[MessageResponse]
    pagination: Pagination


class LeaveGroupResult(BaseModel):
    """Outcome of leaving a group."""

    group_id: int
    group_deleted: bool
    new_admin_id: int | None = None
