"""Append-only record of voice and video calls."""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chatline.db.session import Base
from chatline.db.time import utcnow
from chatline.models.user import User

CALL_TYPES = ("voice", "video")


class CallLog(Base):
    """A single call attempt from ``caller_id`` to ``receiver_id``."""

    __tablename__ = "call_log"
    __table_args__ = (
        CheckConstraint("call_type IN ('voice', 'video')", name="ck_call_log_type"),
        CheckConstraint("duration >= 0", name="ck_call_log_duration"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    caller_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False
    )
    call_type: Mapped[str] = mapped_column(String(8), nullable=False)
    # Seconds.
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    caller: Mapped[User] = relationship("User", foreign_keys=[caller_id])
    receiver: Mapped[User] = relationship("User", foreign_keys=[receiver_id])
