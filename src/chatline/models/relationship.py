"""Models for the relationship graph: friend requests and blocks."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
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

FRIEND_PENDING = "pending"
FRIEND_ACCEPTED = "accepted"
FRIEND_REJECTED = "rejected"
FRIEND_BLOCKED = "blocked"

FRIEND_STATUSES = (FRIEND_PENDING, FRIEND_ACCEPTED, FRIEND_REJECTED, FRIEND_BLOCKED)
# Statuses that still represent a live relationship between the pair.
NON_TERMINAL_FRIEND_STATUSES = (FRIEND_PENDING, FRIEND_ACCEPTED)


class FriendRequest(Base):
    """Friendship state between an unordered pair of users.

    One row per pair: ``user_low_id``/``user_high_id`` hold the pair in
    canonical order so the unique constraint catches requests racing in
    opposite directions.
    """

    __tablename__ = "friend_request"
    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_friend_request_pair"),
        CheckConstraint("user_low_id < user_high_id", name="ck_friend_request_pair_order"),
        CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected', 'blocked')",
            name="ck_friend_request_status",
        ),
        Index("ix_friend_request_receiver_status", "receiver_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sender_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False
    )
    user_low_id: Mapped[int] = mapped_column(Integer, nullable=False)
    user_high_id: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=FRIEND_PENDING)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    sender: Mapped[User] = relationship("User", foreign_keys=[sender_id])
    receiver: Mapped[User] = relationship("User", foreign_keys=[receiver_id])

    def other_party(self, user_id: int) -> User:
        """Return the user on the other side of the request from ``user_id``."""
        return self.receiver if self.sender_id == user_id else self.sender


class BlockRelation(Base):
    """Unilateral block of ``blocked_id`` by ``blocker_id``."""

    __tablename__ = "block_relation"
    __table_args__ = (
        UniqueConstraint("blocker_id", "blocked_id", name="uq_block_relation_pair"),
        CheckConstraint("blocker_id <> blocked_id", name="ck_block_relation_not_self"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    blocker_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False
    )
    blocked_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    blocked: Mapped[User] = relationship("User", foreign_keys=[blocked_id])
