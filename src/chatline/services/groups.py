"""Group conversation membership rules."""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from chatline.core.errors import Conflict, Forbidden, NotFound, ValidationError
from chatline.db.time import utcnow
from chatline.models import GroupConversation, GroupMember, Message, User
from chatline.models.message import MESSAGE_READ
from chatline.schemas.group import GroupCreate, GroupUpdate
from chatline.schemas.message import MessageResponse
from chatline.services import accounts, relationships
from chatline.services.messages import MessageService, visible_to
from chatline.services.notifications import ConnectionRegistry
from chatline.services.storage import AttachmentStorage

logger = logging.getLogger(__name__)


class GroupService:
    """Create, administer and read group conversations."""

    def __init__(
        self,
        db: Session,
        notifier: ConnectionRegistry,
        storage: AttachmentStorage | None = None,
    ) -> None:
        self.db = db
        self.notifier = notifier
        self.storage = storage
        self.messages = MessageService(db, notifier, storage)

    def get_group(self, group_id: int) -> GroupConversation:
        group = self.db.get(GroupConversation, group_id)
        if group is None:
            raise NotFound("Group not found")
        return group

    def _require_admin(self, group: GroupConversation, actor: User) -> None:
        if group.admin_id != actor.id:
            raise Forbidden("Only the group admin can do this")

    def _require_member(self, group: GroupConversation, actor: User) -> None:
        if not group.has_member(actor.id):
            raise Forbidden("You are not a member of this group")

    def _membership(self, group: GroupConversation, user_id: int) -> GroupMember | None:
        for member in group.members:
            if member.user_id == user_id:
                return member
        return None

    def _delete_with_messages(self, group: GroupConversation) -> None:
        """Delete the group and its messages, then remove their attachment files."""
        orphaned = [m.attachment_path for m in group.messages if m.attachment_path]
        self.db.delete(group)
        self.db.commit()
        if self.storage is not None and orphaned:
            self.storage.delete_many(orphaned)

    def create(self, creator: User, payload: GroupCreate) -> GroupConversation:
        """Create a group whose invited members are all friends of the creator."""
        name = payload.name.strip()
        if not name:
            raise ValidationError("Group name is required")

        requested = list(dict.fromkeys(payload.members))
        if len(requested) < 2:
            raise ValidationError("A group needs at least 2 members")

        invited = [user_id for user_id in requested if user_id != creator.id]
        for user_id in invited:
            accounts.require_user(self.db, user_id, label=f"User {user_id}")

        friends = relationships.friend_ids(self.db, creator.id)
        invalid = [user_id for user_id in invited if user_id not in friends]
        if invalid:
            listed = ", ".join(str(user_id) for user_id in invalid)
            raise ValidationError(f"Members must be your friends: {listed}")

        group = GroupConversation(name=name, admin_id=creator.id)
        now = utcnow()
        group.members.append(GroupMember(user_id=creator.id, joined_at=now))
        for user_id in invited:
            group.members.append(GroupMember(user_id=user_id, joined_at=now))
        self.db.add(group)
        self.db.commit()
        self.db.refresh(group)
        logger.info("User %s created group %s with %d member(s)", creator.id, group.id, len(group.members))
        return group

    def add_member(self, actor: User, group_id: int, user_id: int) -> GroupConversation:
        """Admin adds one of their friends to the group."""
        group = self.get_group(group_id)
        self._require_admin(group, actor)
        accounts.require_user(self.db, user_id)
        if group.has_member(user_id):
            raise Conflict("User is already a member of this group")
        relationships.ensure_can_interact(self.db, actor.id, user_id, action="add this user")
        if not relationships.are_friends(self.db, actor.id, user_id):
            raise Forbidden("You can only add your friends to a group")

        group.members.append(GroupMember(user_id=user_id))
        group.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(group)
        logger.info("User %s added to group %s", user_id, group.id)
        return group

    def remove_member(self, actor: User, group_id: int, user_id: int) -> GroupConversation:
        """Admin removes another member."""
        group = self.get_group(group_id)
        self._require_admin(group, actor)
        if user_id == actor.id:
            raise ValidationError("Admins cannot remove themselves; leave the group instead")
        membership = self._membership(group, user_id)
        if membership is None:
            raise NotFound("User is not a member of this group")

        group.members.remove(membership)
        group.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(group)
        logger.info("User %s removed from group %s", user_id, group.id)
        return group

    def leave(self, actor: User, group_id: int) -> dict[str, Any]:
        """Remove the actor from the group.

        An admin leaving hands the role to the longest-standing remaining
        member. The last member leaving deletes the group and its messages.
        """
        group = self.get_group(group_id)
        membership = self._membership(group, actor.id)
        if membership is None:
            raise ValidationError("You are not a member of this group")

        remaining = [m for m in group.members if m.user_id != actor.id]
        if not remaining:
            self._delete_with_messages(group)
            logger.info("Group %s deleted after its last member left", group_id)
            return {"group_id": group_id, "group_deleted": True, "new_admin_id": None}

        new_admin_id = None
        if group.admin_id == actor.id:
            successor = min(remaining, key=lambda m: (m.joined_at, m.user_id))
            group.admin_id = successor.user_id
            new_admin_id = successor.user_id
        group.members.remove(membership)
        group.updated_at = utcnow()
        self.db.commit()
        if new_admin_id is not None:
            logger.info("Admin of group %s passed to user %s", group_id, new_admin_id)
        return {"group_id": group_id, "group_deleted": False, "new_admin_id": new_admin_id}

    def update_info(self, actor: User, group_id: int, update: GroupUpdate) -> GroupConversation:
        """Rename the group and/or hand the admin role to another member."""
        group = self.get_group(group_id)
        self._require_admin(group, actor)
        changes = update.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            raise ValidationError("Provide a new name or a new admin")

        if "name" in changes:
            name = changes["name"].strip()
            if not name:
                raise ValidationError("Group name is required")
            group.name = name
        if "new_admin_id" in changes:
            if not group.has_member(changes["new_admin_id"]):
                raise NotFound("New admin must be a member of this group")
            group.admin_id = changes["new_admin_id"]

        group.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(group)
        return group

    def delete(self, actor: User, group_id: int) -> None:
        group = self.get_group(group_id)
        self._require_admin(group, actor)
        self._delete_with_messages(group)
        logger.info("Group %s deleted by admin %s", group_id, actor.id)

    async def list_messages(
        self, actor: User, group_id: int, page: int, limit: int
    ) -> tuple[list[MessageResponse], int]:
        """Return a page of visible messages, newest first.

        Unread messages from other members on the page are then marked read
        and their senders notified. The returned page shows each message as
        it was before that update.
        """
        group = self.get_group(group_id)
        self._require_member(group, actor)

        criteria = (Message.group_id == group.id, visible_to(actor.id))
        total = int(self.db.scalar(select(func.count(Message.id)).where(*criteria)) or 0)
        stmt = (
            select(Message)
            .where(*criteria)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        page_messages = self.db.scalars(stmt).all()
        listed = [MessageResponse.model_validate(m) for m in page_messages]
        unread = [m for m in page_messages if m.sender_id != actor.id]
        await self.messages.advance_messages(unread, MESSAGE_READ)
        return listed, total

    def list_groups(self, actor: User, page: int, limit: int) -> tuple[list[dict[str, Any]], int]:
        """Return the actor's groups, most recently active first."""
        membership = select(GroupMember.group_id).where(GroupMember.user_id == actor.id)
        criteria = GroupConversation.id.in_(membership)
        total = int(self.db.scalar(select(func.count(GroupConversation.id)).where(criteria)) or 0)
        stmt = (
            select(GroupConversation)
            .where(criteria)
            .order_by(GroupConversation.updated_at.desc(), GroupConversation.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        entries = []
        for group in self.db.scalars(stmt):
            entries.append(
                {
                    "id": group.id,
                    "name": group.name,
                    "admin_id": group.admin_id,
                    "created_at": group.created_at,
                    "updated_at": group.updated_at,
                    "admin": group.admin,
                    "members": group.members,
                    "last_message": self.messages.last_visible_message(actor.id, group_id=group.id),
                    "unread_count": self.messages.unread_count(actor.id, group_id=group.id),
                }
            )
        return entries, total
