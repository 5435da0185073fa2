# src/chatline/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .block import BlockRequest, BlockResponse, UnblockRequest
from .call import CallHistoryEntry, CallLogCreate, CallLogResponse
from .common import Pagination, StatusMessage, UserPresence, UserSummary
from .friend import FriendRequestAction, FriendRequestCreate, FriendRequestResponse
from .group import GroupCreate, GroupMemberAction, GroupResponse, GroupUpdate
from .message import MessageDelete, MessageEdit, MessageResponse, StatusUpdate
from .reaction import ReactionCreate, ReactionResponse
from .user import AuthResponse, LoginRequest, RegisterRequest, UserResponse

__all__ = [
    "AuthResponse", "LoginRequest", "RegisterRequest", "UserResponse",
    "BlockRequest", "BlockResponse", "UnblockRequest",
    "CallHistoryEntry", "CallLogCreate", "CallLogResponse",
    "FriendRequestAction", "FriendRequestCreate", "FriendRequestResponse",
    "GroupCreate", "GroupMemberAction", "GroupResponse", "GroupUpdate",
    "MessageDelete", "MessageEdit", "MessageResponse", "StatusUpdate",
    "Pagination", "StatusMessage", "UserPresence", "UserSummary",
    "ReactionCreate", "ReactionResponse",
]
