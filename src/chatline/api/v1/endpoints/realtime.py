"""Persistent per-user notification socket."""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session, sessionmaker

from chatline.api.v1.dependencies import SessionFactoryDep, resolve_token_user
from chatline.core.errors import Unauthorized
from chatline.core.settings import settings
from chatline.db.time import utcnow
from chatline.services import accounts, relationships
from chatline.services import notifications as events
from chatline.services.notifications import ConnectionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


def record_presence(sessions: sessionmaker[Session], user_id: int, online: bool) -> set[int]:
    """Store the presence flag and return the ids of the user's friends."""
    with sessions() as db:
        accounts.set_presence(db, user_id, online)
        return relationships.friend_ids(db, user_id)


async def announce_presence(
    sessions: sessionmaker[Session],
    registry: ConnectionRegistry,
    user_id: int,
    online: bool,
) -> None:
    """Record presence and tell the user's friends about it."""
    friend_ids = record_presence(sessions, user_id, online)
    payload = {"user_id": user_id, "is_online": online, "last_seen": utcnow().isoformat()}
    await registry.push_many(friend_ids, events.PRESENCE, payload)


@router.websocket("/ws")
async def realtime(websocket: WebSocket, sessions: SessionFactoryDep, token: str | None = None) -> None:
    """Authenticate with ``?token=`` or the auth cookie, then receive pushed events.

    No database session stays open while the socket idles; each lookup uses
    its own short-lived session.
    """
    token = token or websocket.cookies.get(settings.auth_cookie_name)
    try:
        with sessions() as db:
            user_id = resolve_token_user(db, token).id
    except Unauthorized:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    registry: ConnectionRegistry = websocket.app.state.connections

    await websocket.accept()
    registry.register(user_id, websocket)
    logger.info("User %s connected", user_id)
    await announce_presence(sessions, registry, user_id, True)

    try:
        while True:
            # Inbound frames are ignored; the socket is server-push only.
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("User %s disconnected", user_id)
    finally:
        if registry.unregister(user_id, websocket):
            await announce_presence(sessions, registry, user_id, False)
