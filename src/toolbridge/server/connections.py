"""Session id bookkeeping for the HTTP provider endpoint."""

import logging
import time
import uuid

from toolbridge.server.server import ServerConnection, ToolServer

logger = logging.getLogger(__name__)


class ConnectionStore:
    """Maps HTTP session ids to provider connections.

    Session ids are issued on the initialize request and must accompany
    every later request of that session. A session that has seen no request
    and no open stream for ``idle_timeout`` seconds is ended, so consumers
    that vanish without a DELETE do not stay in the store.
    """

    def __init__(self, server: ToolServer, idle_timeout: float | None = None) -> None:
        self.server = server
        self.idle_timeout = idle_timeout
        self._connections: dict[str, ServerConnection] = {}
        self._last_seen: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._connections)

    @staticmethod
    def generate_session_id() -> str:
        """Generate a new unique session ID.

        Returns:
            32-character hexadecimal string
        """
        return uuid.uuid4().hex

    def create(self) -> tuple[str, ServerConnection]:
        self.expire_idle()
        session_id = self.generate_session_id()
        connection = self.server.create_connection()
        self._connections[session_id] = connection
        self._last_seen[session_id] = time.monotonic()
        logger.info(f"Created HTTP session {session_id}")
        return session_id, connection

    def get(self, session_id: str | None) -> ServerConnection | None:
        """Look up a session and mark it as active."""
        self.expire_idle()
        if session_id is None:
            return None
        connection = self._connections.get(session_id)
        if connection is not None:
            self.touch(session_id)
        return connection

    def touch(self, session_id: str) -> None:
        if session_id in self._connections:
            self._last_seen[session_id] = time.monotonic()

    def expire_idle(self, now: float | None = None) -> list[str]:
        """End every session idle for longer than ``idle_timeout``.

        Returns:
            The ids of the sessions that were ended
        """
        if self.idle_timeout is None:
            return []
        if now is None:
            now = time.monotonic()
        expired = [
            session_id
            for session_id, seen in self._last_seen.items()
            if now - seen > self.idle_timeout
        ]
        for session_id in expired:
            logger.info(f"HTTP session {session_id} idle for {self.idle_timeout}s")
            self.remove(session_id)
        return expired

    def remove(self, session_id: str) -> bool:
        """End a session. Returns False if the id was unknown."""
        connection = self._connections.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        if connection is None:
            return False
        self.server.close_connection(connection)
        logger.info(f"Ended HTTP session {session_id}")
        return True

    def close_all(self) -> None:
        for session_id in list(self._connections):
            self.remove(session_id)
