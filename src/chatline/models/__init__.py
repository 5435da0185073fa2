# src/chatline/models/__init__.py
"""SQLAlchemy models for the Chatline application."""

from .call_log import CallLog
from .conversation import Conversation, GroupConversation, GroupMember
from .message import Message, MessageVisibility, Reaction
from .relationship import BlockRelation, FriendRequest
from .user import User

__all__ = [
    "BlockRelation", "FriendRequest",
    "CallLog",
    "Conversation", "GroupConversation", "GroupMember",
    "Message", "MessageVisibility", "Reaction",
    "User",
]
