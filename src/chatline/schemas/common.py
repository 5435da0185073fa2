"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

import math
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from chatline.db.time import as_utc

# Timestamps read back from SQLite are naive; everything is stored as UTC.
UTCDateTime = Annotated[datetime, AfterValidator(as_utc)]


class UserSummary(BaseModel):
    """Public identity fields of a user embedded in other payloads."""

    id: int
    username: str
    fullname: str
    profile_pic: str | None = None

    model_config = ConfigDict(from_attributes=True)


class UserPresence(UserSummary):
    """Public identity plus presence, used for friend and member lists."""

    is_online: bool = False
    last_seen: UTCDateTime | None = None


class Pagination(BaseModel):
    """Page metadata returned alongside paginated lists."""

    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> Pagination:
        """Compute ``total_pages`` for the given page window."""
        return cls(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit))


class StatusMessage(BaseModel):
    """Plain acknowledgement payload."""

    status: str
    message: str | None = None
