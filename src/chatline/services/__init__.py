# src/chatline/services/__init__.py
"""Business logic services for the Chatline application."""

from .groups import GroupService
from .messages import MessageService
from .notifications import ConnectionRegistry
from .reactions import ReactionService
from .storage import AttachmentStorage, StoredFile

__all__ = [
    "AttachmentStorage",
    "ConnectionRegistry",
    "GroupService",
    "MessageService",
    "ReactionService",
    "StoredFile",
]
