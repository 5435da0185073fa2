"""Real-time notification channel keyed by user identity.

The registry maps a user id to the live connections that user currently
holds. Pushes are best-effort: an offline user is not an error, a failed send
drops that connection, and nothing is retried. The stored row is always the
source of truth; a push is only a low-latency hint.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from typing import Any, Protocol

logger = logging.getLogger(__name__)

NEW_MESSAGE = "newMessage"
MESSAGE_STATUS_UPDATE = "messageStatusUpdate"
MESSAGE_UPDATED = "messageUpdated"
MESSAGE_DELETED = "messageDeleted"
NEW_CALL_LOG = "newCallLog"
NEW_REACTION = "newReaction"
REACTION_REMOVED = "reactionRemoved"
PRESENCE = "presence"


class Connection(Protocol):
    """Anything that can deliver a JSON payload to one client session."""

    async def send_json(self, data: Any) -> None:  # pragma: no cover - protocol
        ...


class ConnectionRegistry:
    """Process-wide map from user id to active connections.

    Instances are created by the application on startup and handed to
    request handlers through a dependency, so tests can swap in their own.
    """

    def __init__(self) -> None:
        self._connections: dict[int, list[Connection]] = defaultdict(list)

    def register(self, user_id: int, connection: Connection) -> None:
        """Attach ``connection`` to ``user_id``."""
        if connection not in self._connections[user_id]:
            self._connections[user_id].append(connection)
        logger.debug("Registered connection for user %s", user_id)

    def unregister(self, user_id: int, connection: Connection) -> bool:
        """Detach ``connection``; return True if the user has no connections left."""
        connections = self._connections.get(user_id)
        if not connections:
            return True
        if connection in connections:
            connections.remove(connection)
        if not connections:
            del self._connections[user_id]
            logger.debug("User %s has no live connections", user_id)
            return True
        return False

    def is_online(self, user_id: int) -> bool:
        return bool(self._connections.get(user_id))

    def clear(self) -> None:
        """Forget every connection."""
        self._connections.clear()

    async def push(self, user_id: int, event: str, data: Any) -> int:
        """Send ``event`` to every connection of ``user_id``.

        Returns the number of connections that accepted the payload.
        """
        connections = list(self._connections.get(user_id, ()))
        if not connections:
            return 0

        envelope = {"event": event, "data": data}
        delivered = 0
        for connection in connections:
            try:
                await connection.send_json(envelope)
            except Exception as exc:  # noqa: BLE001 - any transport failure drops the socket
                logger.warning(
                    "Dropping connection for user %s after failed %s push: %s",
                    user_id,
                    event,
                    exc,
                )
                self.unregister(user_id, connection)
                continue
            delivered += 1

        logger.debug("Pushed %s to user %s (%d connection(s))", event, user_id, delivered)
        return delivered

    async def push_many(self, user_ids: Iterable[int], event: str, data: Any) -> int:
        """Send the same event to several users; return total deliveries."""
        total = 0
        for user_id in dict.fromkeys(user_ids):
            total += await self.push(user_id, event, data)
        return total
