import logging
import threading
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """Process-wide map of user id to its live connection.

    One connection per user, last write wins. Created by the app lifespan
    and cleared on shutdown; nothing here survives a restart.
    """

    def __init__(self):
        self.entries: Dict[int, str] = {}
        self.lock = threading.Lock()

    def register(self, user_id: int, connection_id: str) -> Optional[str]:
        """Map ``user_id`` to ``connection_id`` and return the replaced connection, if any.

        A connection speaks for a single user, so any other user previously
        registered on the same connection is dropped.
        """
        with self.lock:
            for uid in [u for u, c in self.entries.items() if c == connection_id and u != user_id]:
                del self.entries[uid]
            previous = self.entries.get(user_id)
            self.entries[user_id] = connection_id
        if previous and previous != connection_id:
            logger.debug("User %s moved from connection %s to %s", user_id, previous, connection_id)
        return previous

    def unregister(self, connection_id: str) -> Optional[int]:
        """Remove the entry held by ``connection_id``.

        Returns the user that went offline, or None when the connection was
        never registered or was already replaced (duplicate disconnects).
        """
        with self.lock:
            for user_id, cid in self.entries.items():
                if cid == connection_id:
                    del self.entries[user_id]
                    return user_id
        logger.debug("Unregister for untracked connection %s ignored", connection_id)
        return None

    def connection_for(self, user_id: int) -> Optional[str]:
        with self.lock:
            return self.entries.get(user_id)

    def is_online(self, user_id: int) -> bool:
        return self.connection_for(user_id) is not None

    def online_users(self) -> List[int]:
        with self.lock:
            return sorted(self.entries)

    def clear(self):
        with self.lock:
            self.entries.clear()
