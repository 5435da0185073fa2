"""Call-log recorder.

Calls themselves happen elsewhere; this module only keeps the append-only
history and tells the receiver a log was written.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from chatline.core.errors import ValidationError
from chatline.models import CallLog, User
from chatline.schemas.call import CallLogCreate, CallLogResponse
from chatline.services import accounts, relationships
from chatline.services import notifications as events
from chatline.services.notifications import ConnectionRegistry

logger = logging.getLogger(__name__)


def history_entry(log: CallLog, viewer_id: int) -> dict[str, Any]:
    """Describe ``log`` from the point of view of ``viewer_id``."""
    outgoing = log.caller_id == viewer_id
    return {
        "id": log.id,
        "call_type": log.call_type,
        "duration": log.duration,
        "is_outgoing": outgoing,
        "timestamp": log.created_at,
        "other_party": log.receiver if outgoing else log.caller,
    }


async def create_call_log(
    db: Session,
    notifier: ConnectionRegistry,
    caller: User,
    receiver_id: int,
    payload: CallLogCreate,
) -> CallLog:
    if receiver_id == caller.id:
        raise ValidationError("You cannot call yourself")
    accounts.require_user(db, receiver_id, label="Receiver")
    relationships.ensure_can_interact(db, caller.id, receiver_id, action="call this user")

    log = CallLog(
        caller_id=caller.id,
        receiver_id=receiver_id,
        call_type=payload.call_type,
        duration=payload.duration,
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    logger.info("Recorded %s call %s from %s to %s", log.call_type, log.id, caller.id, receiver_id)

    data = CallLogResponse.model_validate(log).model_dump(mode="json")
    await notifier.push(receiver_id, events.NEW_CALL_LOG, data)
    return log


def call_history(db: Session, user: User) -> list[dict[str, Any]]:
    """Every call the user took part in, newest first."""
    stmt = (
        select(CallLog)
        .where(or_(CallLog.caller_id == user.id, CallLog.receiver_id == user.id))
        .order_by(CallLog.created_at.desc(), CallLog.id.desc())
    )
    return [history_entry(log, user.id) for log in db.scalars(stmt)]


def call_history_with(db: Session, user: User, other_id: int) -> list[dict[str, Any]]:
    """Calls between ``user`` and ``other_id`` only, newest first."""
    accounts.require_user(db, other_id)
    stmt = (
        select(CallLog)
        .where(
            or_(
                and_(CallLog.caller_id == user.id, CallLog.receiver_id == other_id),
                and_(CallLog.caller_id == other_id, CallLog.receiver_id == user.id),
            )
        )
        .order_by(CallLog.created_at.desc(), CallLog.id.desc())
    )
    return [history_entry(log, user.id) for log in db.scalars(stmt)]
