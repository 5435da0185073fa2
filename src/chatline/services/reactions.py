"""Emoji reactions on messages."""
from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chatline.core.errors import Conflict, Forbidden, NotFound, ValidationError
from chatline.models import Reaction, User
from chatline.schemas.reaction import ReactionResponse
from chatline.services import notifications as events
from chatline.services.messages import MessageService
from chatline.services.notifications import ConnectionRegistry

logger = logging.getLogger(__name__)


class ReactionService:
    def __init__(self, db: Session, notifier: ConnectionRegistry) -> None:
        self.db = db
        self.notifier = notifier
        self.messages = MessageService(db, notifier)

    async def add(self, actor: User, message_id: int, emoji: str) -> Reaction:
        """React to a message the actor can see; each emoji at most once."""
        emoji = emoji.strip()
        if not emoji:
            raise ValidationError("Emoji is required")
        message = self.messages.get_message(message_id)
        self.messages.require_participant(message, actor)
        if self.messages.is_hidden_for(message, actor.id):
            raise NotFound("Message not found")

        duplicate = self.db.scalar(
            select(Reaction.id).where(
                Reaction.message_id == message.id,
                Reaction.user_id == actor.id,
                Reaction.emoji == emoji,
            )
        )
        if duplicate is not None:
            raise Conflict("You already reacted with this emoji")

        reaction = Reaction(message_id=message.id, user_id=actor.id, emoji=emoji)
        self.db.add(reaction)
        try:
            self.db.commit()
        except IntegrityError as err:
            self.db.rollback()
            raise Conflict("You already reacted with this emoji") from err
        self.db.refresh(reaction)

        payload = ReactionResponse.model_validate(reaction).model_dump(mode="json")
        others = [user_id for user_id in self.messages.audience(message) if user_id != actor.id]
        await self.notifier.push_many(others, events.NEW_REACTION, payload)
        return reaction

    async def remove(self, actor: User, reaction_id: int) -> None:
        """Withdraw one of the actor's own reactions."""
        reaction = self.db.get(Reaction, reaction_id)
        if reaction is None:
            raise NotFound("Reaction not found")
        if reaction.user_id != actor.id:
            raise Forbidden("You can only remove your own reactions")

        message = reaction.message
        recipients = [user_id for user_id in self.messages.audience(message) if user_id != actor.id]
        payload = {
            "reaction_id": reaction.id,
            "message_id": reaction.message_id,
            "user_id": actor.id,
            "emoji": reaction.emoji,
        }
        self.db.delete(reaction)
        self.db.commit()
        await self.notifier.push_many(recipients, events.REACTION_REMOVED, payload)

    def list_for_message(self, actor: User, message_id: int) -> Sequence[Reaction]:
        message = self.messages.get_message(message_id)
        self.messages.require_participant(message, actor)
        stmt = (
            select(Reaction)
            .where(Reaction.message_id == message.id)
            .order_by(Reaction.created_at.asc(), Reaction.id.asc())
        )
        return self.db.scalars(stmt).all()
