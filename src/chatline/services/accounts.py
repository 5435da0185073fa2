"""Account helpers: registration, credentials, profile and presence."""
from __future__ import annotations

import logging
from collections.abc import Sequence
from urllib.parse import quote

from sqlalchemy import exists, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chatline.core import security
from chatline.core.errors import Conflict, NotFound, ValidationError
from chatline.db.time import utcnow
from chatline.models import BlockRelation, User
from chatline.schemas.user import PasswordUpdateRequest, ProfileUpdate, RegisterRequest
from chatline.services.storage import StoredFile

logger = logging.getLogger(__name__)

__all__ = [
    "authenticate",
    "default_avatar",
    "list_contacts",
    "register_user",
    "require_user",
    "set_presence",
    "update_password",
    "update_profile",
]

AVATAR_BASE_URL = "https://avatar.iran.liara.run/public"


def default_avatar(username: str, gender: str) -> str:
    """Return the generated avatar URL used when no picture was supplied."""
    bucket = "boy" if gender == "male" else "girl"
    return f"{AVATAR_BASE_URL}/{bucket}?username={quote(username)}"


def require_user(db: Session, user_id: int, *, label: str = "User") -> User:
    """Return the user or raise NotFound."""
    user = db.get(User, user_id)
    if user is None:
        raise NotFound(f"{label} not found")
    return user


def register_user(db: Session, payload: RegisterRequest) -> User:
    """Persist a new account with a bcrypt password hash."""
    existing = db.scalar(select(User.id).where(User.username == payload.username))
    if existing is not None:
        raise Conflict("Username already exists")

    user = User(
        fullname=payload.fullname.strip(),
        username=payload.username,
        gender=payload.gender,
        password_hash=security.hash_password(payload.password),
        profile_pic=payload.profile_pic or default_avatar(payload.username, payload.gender),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as err:
        db.rollback()
        raise Conflict("Username already exists") from err
    db.refresh(user)
    logger.info("Registered user %s (%s)", user.id, user.username)
    return user


def authenticate(db: Session, username: str, password: str) -> User:
    """Return the user whose credentials match.

    Unknown usernames and wrong passwords produce the same error.
    """
    user = db.scalar(select(User).where(User.username == username))
    if user is None or not security.verify_password(password, user.password_hash):
        raise ValidationError("Invalid username or password")
    return user


def update_profile(
    db: Session,
    user: User,
    update: ProfileUpdate,
    *,
    uploaded: StoredFile | None = None,
) -> User:
    """Apply the fields present in ``update`` to ``user``.

    ``uploaded`` is a freshly stored profile image that replaces the current
    picture. The caller removes the file the update replaced (the previous
    ``User.profile_pic_path``).
    """
    changes = update.model_dump(exclude_unset=True)
    if uploaded is not None:
        changes["profile_pic"] = uploaded.url
        changes["profile_pic_path"] = uploaded.path
    elif "profile_pic" in changes:
        changes["profile_pic_path"] = None
    if not changes:
        raise ValidationError("No profile fields to update")

    if "username" in changes and changes["username"] is None:
        raise ValidationError("Username cannot be cleared")
    if "fullname" in changes and changes["fullname"] is None:
        raise ValidationError("Full name cannot be cleared")
    if "gender" in changes and changes["gender"] is None:
        raise ValidationError("Gender cannot be cleared")

    new_username = changes.get("username")
    if new_username and new_username != user.username:
        taken = db.scalar(select(User.id).where(User.username == new_username))
        if taken is not None:
            raise Conflict("Username already exists")

    for key, value in changes.items():
        setattr(user, key, value)

    db.add(user)
    try:
        db.commit()
    except IntegrityError as err:
        db.rollback()
        raise Conflict("Username already exists") from err
    db.refresh(user)
    return user


def update_password(db: Session, user: User, payload: PasswordUpdateRequest) -> None:
    """Replace the password after checking the old one."""
    if not security.verify_password(payload.old_password, user.password_hash):
        raise ValidationError("Old password is incorrect")
    user.password_hash = security.hash_password(payload.new_password)
    db.commit()
    logger.info("Password changed for user %s", user.id)


def list_contacts(db: Session, user: User) -> Sequence[User]:
    """Return every other user, skipping anyone blocked in either direction."""
    blocked = exists().where(
        or_(
            (BlockRelation.blocker_id == user.id) & (BlockRelation.blocked_id == User.id),
            (BlockRelation.blocker_id == User.id) & (BlockRelation.blocked_id == user.id),
        )
    )
    stmt = select(User).where(User.id != user.id, ~blocked).order_by(User.fullname, User.id)
    return db.scalars(stmt).all()


def set_presence(db: Session, user_id: int, online: bool) -> None:
    """Record whether the user currently holds a live connection."""
    user = db.get(User, user_id)
    if user is None:
        return
    user.is_online = online
    user.last_seen = utcnow()
    db.commit()
