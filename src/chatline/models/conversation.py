"""Models for direct and group conversations."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chatline.db.session import Base
from chatline.db.time import utcnow
from chatline.models.user import User

if TYPE_CHECKING:
    from chatline.models.message import Message


def canonical_pair(first_id: int, second_id: int) -> tuple[int, int]:
    """Return the two user ids as ``(low, high)``."""
    return (first_id, second_id) if first_id < second_id else (second_id, first_id)


class Conversation(Base):
    """Direct conversation between exactly two users.

    The participant pair is stored in canonical order and is unique, so the
    database rejects a second conversation for the same pair.
    """

    __tablename__ = "conversation"
    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_conversation_pair"),
        CheckConstraint("user_low_id < user_high_id", name="ck_conversation_pair_order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_low_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False
    )
    user_high_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    # Bumped on every new message; drives inbox ordering.
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    user_low: Mapped[User] = relationship("User", foreign_keys=[user_low_id])
    user_high: Mapped[User] = relationship("User", foreign_keys=[user_high_id])
    messages: Mapped[list[Message]] = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.id",
    )

    @property
    def participant_ids(self) -> tuple[int, int]:
        return (self.user_low_id, self.user_high_id)

    def has_participant(self, user_id: int) -> bool:
        return user_id in self.participant_ids

    def other_participant_id(self, user_id: int) -> int:
        """Return the counterpart of ``user_id`` in this conversation."""
        return self.user_high_id if user_id == self.user_low_id else self.user_low_id


class GroupConversation(Base):
    """Named conversation with N members and exactly one admin."""

    __tablename__ = "group_conversation"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    admin_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    admin: Mapped[User] = relationship("User", foreign_keys=[admin_id])
    members: Mapped[list[GroupMember]] = relationship(
        "GroupMember",
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="GroupMember.joined_at, GroupMember.user_id",
    )
    messages: Mapped[list[Message]] = relationship(
        "Message",
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="Message.id",
    )

    @property
    def member_ids(self) -> list[int]:
        return [member.user_id for member in self.members]

    def has_member(self, user_id: int) -> bool:
        return any(member.user_id == user_id for member in self.members)


class GroupMember(Base):
    """Membership of a user in a group conversation."""

    __tablename__ = "group_member"

    group_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("group_conversation.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("user_account.id", ondelete="CASCADE"),
        primary_key=True,
    )
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    group: Mapped[GroupConversation] = relationship("GroupConversation", back_populates="members")
    user: Mapped[User] = relationship("User")
