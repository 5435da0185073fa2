"""Message engine: sending, delivery status, editing and deletion.

Every operation follows the same shape: existence and permission checks,
one commit, then a best-effort push through the connection registry. The
database row is the source of truth; pushes never affect the outcome
reported to the caller.
"""
from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any, Literal

from sqlalchemy import exists, func, or_, select
from sqlalchemy.orm import Session

from chatline.core.errors import Conflict, Forbidden, NotFound, ValidationError
from chatline.db.time import utcnow
from chatline.models import (
    Conversation,
    GroupConversation,
    Message,
    MessageVisibility,
    User,
)
from chatline.models.message import MESSAGE_READ, MESSAGE_SENT, MESSAGE_STATUS_RANK
from chatline.schemas.message import MessageResponse
from chatline.services import accounts, conversations, relationships
from chatline.services import notifications as events
from chatline.services.notifications import ConnectionRegistry
from chatline.services.storage import AttachmentStorage, StoredFile

logger = logging.getLogger(__name__)

DeleteScope = Literal["me", "all"]


def serialize_message(message: Message) -> dict[str, Any]:
    """Return the JSON-ready payload used both in responses and pushes."""
    return MessageResponse.model_validate(message).model_dump(mode="json")


def visible_to(user_id: int):
    """SQL criterion excluding messages the user has hidden for themselves."""
    return ~exists().where(
        MessageVisibility.message_id == Message.id,
        MessageVisibility.user_id == user_id,
    )


def lower_statuses(status: str) -> list[str]:
    """Return every status strictly behind ``status``."""
    rank = MESSAGE_STATUS_RANK[status]
    return [name for name, value in MESSAGE_STATUS_RANK.items() if value < rank]


class MessageService:
    """Operations on direct and group messages."""

    def __init__(
        self,
        db: Session,
        notifier: ConnectionRegistry,
        storage: AttachmentStorage | None = None,
    ) -> None:
        self.db = db
        self.notifier = notifier
        self.storage = storage

    # Lookups -----------------------------------------------------------------

    def get_message(self, message_id: int) -> Message:
        message = self.db.get(Message, message_id)
        if message is None:
            raise NotFound("Message not found")
        return message

    def audience(self, message: Message) -> list[int]:
        """Return ids of every user who can see the message's thread."""
        if message.conversation is not None:
            return list(message.conversation.participant_ids)
        if message.group is not None:
            return message.group.member_ids
        return []

    def require_participant(self, message: Message, user: User) -> None:
        if user.id not in self.audience(message):
            raise Forbidden("You are not a participant in this conversation")

    def is_hidden_for(self, message: Message, user_id: int) -> bool:
        return self.db.get(MessageVisibility, (message.id, user_id)) is not None

    # Sending -----------------------------------------------------------------

    @contextmanager
    def _owning(self, attachment: StoredFile | None) -> Iterator[None]:
        """Remove ``attachment`` from disk if the enclosed operation fails."""
        try:
            yield
        except Exception:
            if attachment is not None and self.storage is not None:
                self.storage.delete(attachment.path)
            raise

    def _build_message(
        self,
        sender: User,
        body: str | None,
        attachment: StoredFile | None,
    ) -> Message:
        text = body.strip() if body else ""
        if not text and attachment is None:
            raise ValidationError("Message cannot be empty")

        message = Message(sender_id=sender.id, body=text or None, status=MESSAGE_SENT)
        if attachment is not None:
            message.attachment_url = attachment.url
            message.attachment_name = attachment.name
            message.attachment_type = attachment.content_type
            message.attachment_path = attachment.path
        return message

    async def send_direct(
        self,
        sender: User,
        receiver_id: int,
        body: str | None = None,
        attachment: StoredFile | None = None,
    ) -> Message:
        """Send a direct message, creating the conversation on first contact."""
        with self._owning(attachment):
            if receiver_id == sender.id:
                raise ValidationError("You cannot send a message to yourself")
            message = self._build_message(sender, body, attachment)
            accounts.require_user(self.db, receiver_id, label="Receiver")
            relationships.ensure_can_interact(
                self.db, sender.id, receiver_id, action="send a message"
            )

            conversation = conversations.get_or_create_direct_conversation(
                self.db, sender.id, receiver_id
            )
            message.conversation_id = conversation.id
            self.db.add(message)
            conversation.updated_at = utcnow()
            self.db.commit()
            self.db.refresh(message)

        payload = serialize_message(message)
        await self.notifier.push(receiver_id, events.NEW_MESSAGE, payload)
        return message

    async def send_group(
        self,
        sender: User,
        group_id: int,
        body: str | None = None,
        attachment: StoredFile | None = None,
    ) -> Message:
        """Post a message to a group the sender belongs to."""
        with self._owning(attachment):
            group = self.db.get(GroupConversation, group_id)
            if group is None:
                raise NotFound("Group not found")
            if not group.has_member(sender.id):
                raise Forbidden("You are not a member of this group")
            message = self._build_message(sender, body, attachment)

            message.group_id = group.id
            self.db.add(message)
            group.updated_at = utcnow()
            self.db.commit()
            self.db.refresh(message)

        payload = serialize_message(message)
        recipients = [member_id for member_id in group.member_ids if member_id != sender.id]
        await self.notifier.push_many(recipients, events.NEW_MESSAGE, payload)
        return message

    # Reading -----------------------------------------------------------------

    def list_direct(self, user: User, other_id: int) -> Sequence[Message]:
        """Return the visible history with ``other_id``, oldest first."""
        accounts.require_user(self.db, other_id)
        conversation = conversations.find_direct_conversation(self.db, user.id, other_id)
        if conversation is None:
            return []
        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation.id, visible_to(user.id))
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        return self.db.scalars(stmt).all()

    def last_visible_message(self, user_id: int, *, conversation_id: int | None = None,
                             group_id: int | None = None) -> Message | None:
        stmt = select(Message).where(visible_to(user_id))
        if conversation_id is not None:
            stmt = stmt.where(Message.conversation_id == conversation_id)
        else:
            stmt = stmt.where(Message.group_id == group_id)
        stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc()).limit(1)
        return self.db.scalar(stmt)

    def unread_count(self, user_id: int, *, conversation_id: int | None = None,
                     group_id: int | None = None) -> int:
        """Count visible messages from others that ``user_id`` has not read."""
        stmt = select(func.count(Message.id)).where(
            Message.sender_id != user_id,
            Message.status != MESSAGE_READ,
            visible_to(user_id),
        )
        if conversation_id is not None:
            stmt = stmt.where(Message.conversation_id == conversation_id)
        else:
            stmt = stmt.where(Message.group_id == group_id)
        return int(self.db.scalar(stmt) or 0)

    def list_inbox(self, user: User, page: int, limit: int) -> tuple[list[dict[str, Any]], int]:
        """Return the user's direct conversations, most recently active first."""
        criteria = or_(Conversation.user_low_id == user.id, Conversation.user_high_id == user.id)
        total = int(self.db.scalar(select(func.count(Conversation.id)).where(criteria)) or 0)
        stmt = (
            select(Conversation)
            .where(criteria)
            .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        entries = []
        for conversation in self.db.scalars(stmt):
            other_id = conversation.other_participant_id(user.id)
            participant = (
                conversation.user_low if conversation.user_low_id == other_id
                else conversation.user_high
            )
            entries.append(
                {
                    "id": conversation.id,
                    "participant": participant,
                    "last_message": self.last_visible_message(
                        user.id, conversation_id=conversation.id
                    ),
                    "unread_count": self.unread_count(user.id, conversation_id=conversation.id),
                    "updated_at": conversation.updated_at,
                }
            )
        return entries, total

    # Delivery status ---------------------------------------------------------

    def _status_payload(self, message: Message) -> dict[str, Any]:
        return {
            "message_id": message.id,
            "conversation_id": message.conversation_id,
            "group_id": message.group_id,
            "status": message.status,
        }

    async def advance_messages(self, messages: Sequence[Message], status: str) -> list[Message]:
        """Move each message forward to ``status`` in one commit.

        Messages already at or past ``status`` are skipped. Each advanced
        message notifies its own sender.
        """
        target_rank = MESSAGE_STATUS_RANK[status]
        advanced = [m for m in messages if m.status_rank < target_rank]
        if not advanced:
            return []
        for message in advanced:
            message.status = status
        self.db.commit()

        for message in advanced:
            await self.notifier.push(
                message.sender_id,
                events.MESSAGE_STATUS_UPDATE,
                self._status_payload(message),
            )
        return advanced

    async def update_status(self, message_id: int, status: str, actor: User) -> Message:
        """Advance one message's delivery status on behalf of a recipient."""
        message = self.get_message(message_id)
        self.require_participant(message, actor)
        if message.sender_id == actor.id:
            raise Forbidden("Only a recipient can update the message status")

        if MESSAGE_STATUS_RANK[status] < message.status_rank:
            raise Conflict(f"Message is already {message.status}")
        await self.advance_messages([message], status)
        return message

    async def update_conversation_status(
        self, conversation_id: int, status: str, actor: User
    ) -> int:
        """Advance every message the other party sent in a direct conversation."""
        conversation = self.db.get(Conversation, conversation_id)
        if conversation is None:
            raise NotFound("Conversation not found")
        if not conversation.has_participant(actor.id):
            raise Forbidden("You are not a participant in this conversation")

        stmt = (
            select(Message)
            .where(
                Message.conversation_id == conversation.id,
                Message.sender_id != actor.id,
                Message.status.in_(lower_statuses(status)),
            )
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        advanced = await self.advance_messages(self.db.scalars(stmt).all(), status)
        logger.debug(
            "User %s advanced %d message(s) to %s in conversation %s",
            actor.id, len(advanced), status, conversation.id,
        )
        return len(advanced)

    # Editing and deletion ----------------------------------------------------

    async def edit(self, message_id: int, body: str, actor: User) -> Message:
        """Replace the body of the actor's own message."""
        message = self.get_message(message_id)
        if message.sender_id != actor.id:
            raise Forbidden("You can only edit your own messages")
        text = body.strip()
        if not text:
            raise ValidationError("Message cannot be empty")

        message.body = text
        message.edited = True
        message.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(message)

        payload = serialize_message(message)
        others = [user_id for user_id in self.audience(message) if user_id != actor.id]
        await self.notifier.push_many(others, events.MESSAGE_UPDATED, payload)
        return message

    async def delete(self, message_id: int, actor: User, scope: DeleteScope) -> None:
        """Delete a message for everyone (sender only) or hide it for the actor."""
        message = self.get_message(message_id)
        self.require_participant(message, actor)

        payload = {
            "message_id": message.id,
            "conversation_id": message.conversation_id,
            "group_id": message.group_id,
            "delete_for": scope,
        }

        if scope == "all":
            if message.sender_id != actor.id:
                raise Forbidden("Only the sender can delete a message for everyone")
            recipients = self.audience(message)
            attachment_path = message.attachment_path
            self.db.delete(message)
            self.db.commit()
            if attachment_path and self.storage is not None:
                self.storage.delete(attachment_path)
            logger.info("Message %s deleted for everyone by user %s", message_id, actor.id)
            await self.notifier.push_many(recipients, events.MESSAGE_DELETED, payload)
            return

        if not self.is_hidden_for(message, actor.id):
            self.db.add(MessageVisibility(message_id=message.id, user_id=actor.id))
            self.db.commit()
        await self.notifier.push(actor.id, events.MESSAGE_DELETED, payload)
