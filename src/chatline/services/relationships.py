"""Relationship graph: block records, friend requests and the interaction gate.

``can_interact`` is consulted before any flow that lets one user reach
another (messages, calls, friend requests, group additions). A block in
either direction closes every one of them.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chatline.core.errors import Conflict, Forbidden, NotFound, ValidationError
from chatline.models import BlockRelation, FriendRequest, User
from chatline.models.conversation import canonical_pair
from chatline.models.relationship import (
    FRIEND_ACCEPTED,
    FRIEND_BLOCKED,
    FRIEND_PENDING,
    FRIEND_REJECTED,
    NON_TERMINAL_FRIEND_STATUSES,
)
from chatline.services import accounts, conversations
from chatline.services.storage import AttachmentStorage

logger = logging.getLogger(__name__)


def _pair_filter(first_id: int, second_id: int):
    low, high = canonical_pair(first_id, second_id)
    return and_(FriendRequest.user_low_id == low, FriendRequest.user_high_id == high)


def is_blocked(db: Session, blocker_id: int, blocked_id: int) -> bool:
    """Return True if ``blocker_id`` has blocked ``blocked_id``."""
    stmt = select(BlockRelation.id).where(
        BlockRelation.blocker_id == blocker_id,
        BlockRelation.blocked_id == blocked_id,
    )
    return db.scalar(stmt) is not None


def can_interact(db: Session, first_id: int, second_id: int) -> bool:
    """Return False if a block exists between the two users in either direction."""
    stmt = select(BlockRelation.id).where(
        or_(
            and_(BlockRelation.blocker_id == first_id, BlockRelation.blocked_id == second_id),
            and_(BlockRelation.blocker_id == second_id, BlockRelation.blocked_id == first_id),
        )
    )
    return db.scalar(stmt.limit(1)) is None


def ensure_can_interact(db: Session, first_id: int, second_id: int, *, action: str) -> None:
    """Raise Forbidden unless the two users may interact."""
    if not can_interact(db, first_id, second_id):
        raise Forbidden(f"Cannot {action}: one of you has blocked the other")


def get_friend_request_between(db: Session, first_id: int, second_id: int) -> FriendRequest | None:
    """Return the friend request row for the unordered pair, if any."""
    return db.scalar(select(FriendRequest).where(_pair_filter(first_id, second_id)))


def are_friends(db: Session, first_id: int, second_id: int) -> bool:
    """Return True if the pair has an accepted friend request."""
    request = get_friend_request_between(db, first_id, second_id)
    return request is not None and request.status == FRIEND_ACCEPTED


def friend_ids(db: Session, user_id: int) -> set[int]:
    """Return ids of every user with an accepted friendship with ``user_id``."""
    rows = db.execute(
        select(FriendRequest.sender_id, FriendRequest.receiver_id).where(
            or_(FriendRequest.sender_id == user_id, FriendRequest.receiver_id == user_id),
            FriendRequest.status == FRIEND_ACCEPTED,
        )
    ).all()
    return {receiver if sender == user_id else sender for sender, receiver in rows}


# Blocks ---------------------------------------------------------------------


def block_user(
    db: Session,
    blocker: User,
    blocked_id: int,
    reason: str | None = None,
    *,
    storage: AttachmentStorage | None = None,
) -> BlockRelation:
    """Block ``blocked_id`` and tear down the pair's shared state.

    In one commit: live friend requests become ``blocked``, the direct
    conversation (with its messages) is deleted and the block is recorded.
    Attachment files of the deleted messages are removed afterwards.
    """
    if blocker.id == blocked_id:
        raise ValidationError("You cannot block yourself")
    accounts.require_user(db, blocked_id, label="User to block")
    if is_blocked(db, blocker.id, blocked_id):
        raise Conflict("User is already blocked")

    request = get_friend_request_between(db, blocker.id, blocked_id)
    if request is not None and request.status in NON_TERMINAL_FRIEND_STATUSES:
        request.status = FRIEND_BLOCKED

    orphaned_files: list[str | None] = []
    conversation = conversations.find_direct_conversation(db, blocker.id, blocked_id)
    if conversation is not None:
        orphaned_files = [m.attachment_path for m in conversation.messages if m.attachment_path]
        db.delete(conversation)

    record = BlockRelation(blocker_id=blocker.id, blocked_id=blocked_id, reason=reason)
    db.add(record)
    try:
        db.commit()
    except IntegrityError as err:
        db.rollback()
        raise Conflict("User is already blocked") from err
    db.refresh(record)

    if storage is not None and orphaned_files:
        storage.delete_many(orphaned_files)
    logger.info("User %s blocked user %s", blocker.id, blocked_id)
    return record


def unblock_user(db: Session, blocker: User, blocked_id: int) -> User:
    """Lift a block created by ``blocker``.

    A friend request frozen as ``blocked`` drops to ``rejected`` (never back to
    pending), unless the other user still blocks ``blocker``.
    """
    target = accounts.require_user(db, blocked_id)
    record = db.scalar(
        select(BlockRelation).where(
            BlockRelation.blocker_id == blocker.id,
            BlockRelation.blocked_id == blocked_id,
        )
    )
    if record is None:
        raise NotFound("User is not blocked")

    db.delete(record)
    if not is_blocked(db, blocked_id, blocker.id):
        request = get_friend_request_between(db, blocker.id, blocked_id)
        if request is not None and request.status == FRIEND_BLOCKED:
            request.status = FRIEND_REJECTED
    db.commit()
    logger.info("User %s unblocked user %s", blocker.id, blocked_id)
    return target


def list_blocks(db: Session, user: User) -> Sequence[BlockRelation]:
    """Return blocks created by ``user``, most recent first."""
    stmt = (
        select(BlockRelation)
        .where(BlockRelation.blocker_id == user.id)
        .order_by(BlockRelation.created_at.desc(), BlockRelation.id.desc())
    )
    return db.scalars(stmt).all()


# Friend requests ------------------------------------------------------------


def send_friend_request(db: Session, sender: User, receiver_id: int) -> FriendRequest:
    """Open a pending request from ``sender`` to ``receiver_id``."""
    if sender.id == receiver_id:
        raise ValidationError("You cannot send a friend request to yourself")
    accounts.require_user(db, receiver_id, label="Receiver")
    ensure_can_interact(db, sender.id, receiver_id, action="send a friend request")

    low, high = canonical_pair(sender.id, receiver_id)
    request = get_friend_request_between(db, sender.id, receiver_id)
    if request is not None:
        if request.status != FRIEND_REJECTED:
            raise Conflict("A friend request already exists between you")
        # A rejected request may be reopened, in whichever direction is asked now.
        request.sender_id = sender.id
        request.receiver_id = receiver_id
        request.status = FRIEND_PENDING
    else:
        request = FriendRequest(
            sender_id=sender.id,
            receiver_id=receiver_id,
            user_low_id=low,
            user_high_id=high,
            status=FRIEND_PENDING,
        )
        db.add(request)

    try:
        db.commit()
    except IntegrityError as err:
        db.rollback()
        raise Conflict("A friend request already exists between you") from err
    db.refresh(request)
    return request


def _require_incoming_pending(db: Session, actor: User, request_id: int, verb: str) -> FriendRequest:
    request = db.get(FriendRequest, request_id)
    if request is None:
        raise NotFound("Friend request not found")
    if request.receiver_id != actor.id:
        raise Forbidden(f"Only the receiver can {verb} this friend request")
    if request.status != FRIEND_PENDING:
        raise Conflict(f"Friend request is already {request.status}")
    return request


def accept_friend_request(db: Session, actor: User, request_id: int) -> FriendRequest:
    """Accept a pending request and open the pair's direct conversation."""
    request = _require_incoming_pending(db, actor, request_id, "accept")
    ensure_can_interact(db, request.sender_id, request.receiver_id, action="accept this request")

    request.status = FRIEND_ACCEPTED
    conversations.get_or_create_direct_conversation(db, request.sender_id, request.receiver_id)
    db.commit()
    db.refresh(request)
    logger.info("Friend request %s accepted", request.id)
    return request


def reject_friend_request(db: Session, actor: User, request_id: int) -> FriendRequest:
    """Reject a pending request addressed to ``actor``."""
    request = _require_incoming_pending(db, actor, request_id, "reject")
    request.status = FRIEND_REJECTED
    db.commit()
    db.refresh(request)
    return request


def incoming_requests(db: Session, user: User) -> Sequence[FriendRequest]:
    stmt = (
        select(FriendRequest)
        .where(FriendRequest.receiver_id == user.id, FriendRequest.status == FRIEND_PENDING)
        .order_by(FriendRequest.created_at.desc(), FriendRequest.id.desc())
    )
    return db.scalars(stmt).all()


def outgoing_requests(db: Session, user: User) -> Sequence[FriendRequest]:
    stmt = (
        select(FriendRequest)
        .where(FriendRequest.sender_id == user.id, FriendRequest.status == FRIEND_PENDING)
        .order_by(FriendRequest.created_at.desc(), FriendRequest.id.desc())
    )
    return db.scalars(stmt).all()


def list_friends(db: Session, user: User) -> list[User]:
    """Return the users with an accepted friendship with ``user``."""
    stmt = select(FriendRequest).where(
        or_(FriendRequest.sender_id == user.id, FriendRequest.receiver_id == user.id),
        FriendRequest.status == FRIEND_ACCEPTED,
    )
    friends = [request.other_party(user.id) for request in db.scalars(stmt)]
    return sorted(friends, key=lambda friend: (friend.fullname, friend.id))
