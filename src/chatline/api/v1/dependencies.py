"""Shared API dependencies for authentication and common functionality."""

from typing import Annotated

from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session, sessionmaker

from chatline.core.errors import Unauthorized
from chatline.core.security import decode_access_token
from chatline.core.settings import settings
from chatline.db.session import get_db, get_session_factory
from chatline.models import User
from chatline.services.notifications import ConnectionRegistry
from chatline.services.storage import AttachmentStorage, get_storage

# Bearer header is optional; the auth cookie is accepted as well.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]
# Sessionmaker for code that manages its own short-lived sessions
SessionFactoryDep = Annotated[sessionmaker[Session], Depends(get_session_factory)]


def resolve_token_user(db: Session, token: str | None) -> User:
    """Return the user identified by ``token``.

    Raises:
        Unauthorized: If the token is missing, invalid or names no user
    """
    if not token:
        raise Unauthorized("Not authenticated")
    try:
        user_id = decode_access_token(token)
    except ValueError as err:
        raise Unauthorized("Could not validate credentials") from err

    user = db.get(User, user_id)
    if user is None:
        raise Unauthorized("User not found")
    return user


def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from the bearer token or auth cookie.

    Args:
        request: Incoming request, consulted for the auth cookie
        credentials: HTTP Bearer token credentials, if sent
        db: Database session

    Returns:
        User object for the authenticated user

    Raises:
        Unauthorized: If no valid token was supplied or the user is gone
    """
    token = credentials.credentials if credentials else request.cookies.get(settings.auth_cookie_name)
    return resolve_token_user(db, token)


def get_connection_registry(request: Request) -> ConnectionRegistry:
    """Return the registry created for this application on startup."""
    return request.app.state.connections


def get_storage_dep() -> AttachmentStorage:
    return get_storage()


class PageParams:
    """Page window taken from ``page``/``limit`` query parameters."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    ) -> None:
        self.page = page
        self.limit = limit


# Type aliases for common dependencies
CurrentUserDep = Annotated[User, Depends(get_current_user)]
RegistryDep = Annotated[ConnectionRegistry, Depends(get_connection_registry)]
StorageDep = Annotated[AttachmentStorage, Depends(get_storage_dep)]
PageDep = Annotated[PageParams, Depends()]
