"""
In-memory presence tracking.

Online status is per process: an instance only knows the connections it
holds itself. Running several instances needs an external presence store.
"""
import logging
from typing import Dict, List, Set

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """
    Tracks which users currently hold at least one live connection.

    A user may be connected from several devices at once; they count as
    online while any of those connections is open.
    """

    def __init__(self):
        """Initialize an empty registry."""
        # {user_id: set of connection ids}
        self._connections: Dict[str, Set[str]] = {}

    def add_connection(self, user_id: str, conn_id: str) -> bool:
        """
        Record a new connection for a user.

        Args:
            user_id: User ID
            conn_id: Transport connection ID (e.g. Socket.IO sid)

        Returns:
            True if the user just came online (first connection)
        """
        sessions = self._connections.setdefault(user_id, set())
        came_online = not sessions
        sessions.add(conn_id)

        if came_online:
            logger.info(f"User {user_id} is now online")
        return came_online

    def remove_connection(self, user_id: str, conn_id: str) -> bool:
        """
        Drop a connection for a user.

        Args:
            user_id: User ID
            conn_id: Transport connection ID

        Returns:
            True if the user just went offline (last connection removed)
        """
        sessions = self._connections.get(user_id)
        if not sessions:
            return False

        sessions.discard(conn_id)
        if sessions:
            return False

        del self._connections[user_id]
        logger.info(f"User {user_id} is now offline")
        return True

    def is_online(self, user_id: str) -> bool:
        """Check whether the user has any open connection."""
        return bool(self._connections.get(user_id))

    def connection_count(self, user_id: str) -> int:
        """Number of open connections for a user."""
        return len(self._connections.get(user_id, ()))

    def online_user_ids(self) -> List[str]:
        """IDs of every user with at least one open connection."""
        return list(self._connections.keys())
