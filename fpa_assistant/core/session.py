"""
Session store for chat conversations.

Each session holds one ChatAssistant, which owns the conversation log
and the pending dialogue operation. Sessions are created on the first
/chat call and cleaned up after an idle timeout.
"""

import threading
import time
import uuid
from typing import Any, Callable

# Default session timeout: 30 minutes
DEFAULT_SESSION_TIMEOUT_SECONDS = 30 * 60


class Session:
    """A single conversation session wrapping its assistant."""

    def __init__(self, assistant: Any):
        self.assistant = assistant
        self.created_at: float = time.time()
        self.last_accessed_at: float = time.time()

    def touch(self) -> None:
        """Update the last accessed timestamp."""
        self.last_accessed_at = time.time()

    def is_expired(self, timeout_seconds: int = DEFAULT_SESSION_TIMEOUT_SECONDS) -> bool:
        """Check if the session has expired."""
        return (time.time() - self.last_accessed_at) > timeout_seconds


class SessionStore:
    """In-memory store for conversation sessions.

    Thread-safe for basic use.

    Args:
        assistant_factory: Builds a fresh assistant for a new session.
        timeout_seconds: Idle time after which a session is dropped.
    """

    def __init__(
        self,
        assistant_factory: Callable[[], Any],
        timeout_seconds: int = DEFAULT_SESSION_TIMEOUT_SECONDS,
    ):
        self._assistant_factory = assistant_factory
        self._sessions: dict[str, Session] = {}
        self._timeout_seconds = timeout_seconds
        self._lock = threading.RLock()

    def create_session(self, conversation_id: str | None = None) -> tuple[str, Session]:
        """Create a new session.

        Args:
            conversation_id: Optional custom ID. Auto-generated if not provided.

        Returns:
            Tuple of (conversation_id, Session).
        """
        if conversation_id is None:
            conversation_id = str(uuid.uuid4())

        session = Session(self._assistant_factory())
        with self._lock:
            self._sessions[conversation_id] = session
        return conversation_id, session

    def get_session(self, conversation_id: str) -> Session | None:
        """Retrieve a session by conversation ID.

        Returns None if the session doesn't exist or has expired.
        Automatically cleans up expired sessions.
        """
        with self._lock:
            session = self._sessions.get(conversation_id)
        if session is None:
            return None

        if session.is_expired(self._timeout_seconds):
            self.delete_session(conversation_id)
            return None

        session.touch()
        return session

    def delete_session(self, conversation_id: str) -> bool:
        """Delete a session, closing its assistant. Returns True if it existed."""
        with self._lock:
            session = self._sessions.pop(conversation_id, None)
        if session is None:
            return False
        session.assistant.close()
        return True

    def cleanup_expired(self) -> int:
        """Remove all expired sessions. Returns the count of removed sessions."""
        with self._lock:
            expired = [
                cid for cid, session in self._sessions.items()
                if session.is_expired(self._timeout_seconds)
            ]
        for cid in expired:
            self.delete_session(cid)
        return len(expired)

    def count(self) -> int:
        """Return the number of active sessions."""
        with self._lock:
            return len(self._sessions)
