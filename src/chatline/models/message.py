"""Models for messages, per-user visibility and reactions."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chatline.db.session import Base
from chatline.db.time import utcnow
from chatline.models.user import User

if TYPE_CHECKING:
    from chatline.models.conversation import Conversation, GroupConversation

MESSAGE_SENT = "sent"
MESSAGE_DELIVERED = "delivered"
MESSAGE_READ = "read"

# Delivery status only ever moves forward along this order.
MESSAGE_STATUS_RANK = {
    MESSAGE_SENT: 0,
    MESSAGE_DELIVERED: 1,
    MESSAGE_READ: 2,
}


class Message(Base):
    """Message posted to exactly one direct or group conversation."""

    __tablename__ = "message"
    __table_args__ = (
        CheckConstraint(
            "(conversation_id IS NULL) <> (group_id IS NULL)",
            name="ck_message_single_parent",
        ),
        CheckConstraint(
            "status IN ('sent', 'delivered', 'read')",
            name="ck_message_status",
        ),
        Index("ix_message_conversation_created", "conversation_id", "created_at"),
        Index("ix_message_group_created", "group_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("conversation.id", ondelete="CASCADE"), nullable=True
    )
    group_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("group_conversation.id", ondelete="CASCADE"), nullable=True
    )
    sender_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False
    )

    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    attachment_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    attachment_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    attachment_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    # Location on local disk; never exposed through the API.
    attachment_path: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=MESSAGE_SENT)
    edited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    sender: Mapped[User] = relationship("User")
    conversation: Mapped[Conversation | None] = relationship(
        "Conversation", back_populates="messages"
    )
    group: Mapped[GroupConversation | None] = relationship(
        "GroupConversation", back_populates="messages"
    )
    hidden_for: Mapped[list[MessageVisibility]] = relationship(
        "MessageVisibility",
        back_populates="message",
        cascade="all, delete-orphan",
    )
    reactions: Mapped[list[Reaction]] = relationship(
        "Reaction",
        back_populates="message",
        cascade="all, delete-orphan",
        order_by="Reaction.id",
    )

    @property
    def status_rank(self) -> int:
        return MESSAGE_STATUS_RANK[self.status]


class MessageVisibility(Base):
    """Marks a message as hidden for one user ("delete for me")."""

    __tablename__ = "message_visibility"

    message_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("message.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("user_account.id", ondelete="CASCADE"),
        primary_key=True,
    )
    hidden_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    message: Mapped[Message] = relationship("Message", back_populates="hidden_for")


class Reaction(Base):
    """Emoji reaction left by a user on a message."""

    __tablename__ = "reaction"
    __table_args__ = (
        UniqueConstraint("message_id", "user_id", "emoji", name="uq_reaction_triple"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    message_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("message.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False
    )
    emoji: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    message: Mapped[Message] = relationship("Message", back_populates="reactions")
    user: Mapped[User] = relationship("User")
