"""Direct conversation resolution."""
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chatline.core.errors import ValidationError
from chatline.models import Conversation
from chatline.models.conversation import canonical_pair

logger = logging.getLogger(__name__)


def find_direct_conversation(db: Session, first_id: int, second_id: int) -> Conversation | None:
    """Return the conversation whose participants are exactly the two users."""
    low, high = canonical_pair(first_id, second_id)
    stmt = select(Conversation).where(
        Conversation.user_low_id == low,
        Conversation.user_high_id == high,
    )
    return db.scalar(stmt)


def get_or_create_direct_conversation(db: Session, first_id: int, second_id: int) -> Conversation:
    """Return the pair's conversation, creating it if needed.

    The insert runs in a savepoint. If a concurrent request created the same
    pair first, the unique constraint rejects ours and the existing row is
    returned instead. The caller owns the surrounding commit.
    """
    if first_id == second_id:
        raise ValidationError("A conversation needs two different users")

    existing = find_direct_conversation(db, first_id, second_id)
    if existing is not None:
        return existing

    low, high = canonical_pair(first_id, second_id)
    conversation = Conversation(user_low_id=low, user_high_id=high)
    savepoint = db.begin_nested()
    db.add(conversation)
    try:
        db.flush()
    except IntegrityError:
        savepoint.rollback()
        logger.debug("Conversation for pair (%s, %s) created concurrently", low, high)
        existing = find_direct_conversation(db, low, high)
        if existing is None:
            raise
        return existing
    savepoint.commit()
    logger.debug("Created conversation %s for pair (%s, %s)", conversation.id, low, high)
    return conversation
