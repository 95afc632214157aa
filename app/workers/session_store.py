"""In-memory registry of conversion sessions.

Sessions live only as long as the process; nothing is written to disk. A session
that has not been touched for ``ttl_seconds`` is dropped, unless a run is in flight.
"""

import threading
import time
import uuid
from collections.abc import Callable

from app.agents.base import BaseAgent
from app.core.settings import get_settings
from app.core.utils import get_logger
from app.workers.pipeline import PipelineController

logger = get_logger("statement-converter.sessions")


class SessionNotFoundError(Exception):
    """Raised when a session id is unknown or has expired."""


class SessionStore:
    """Thread-safe map of session id to pipeline controller, with idle expiry."""

    def __init__(self, ttl_seconds: float = 3600, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize an empty store."""
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._sessions: dict[str, PipelineController] = {}
        self._last_seen: dict[str, float] = {}
        self._lock = threading.Lock()

    def _evict_expired(self, now: float) -> None:
        """Drop idle-expired sessions. Callers hold the lock."""
        expired = [
            session_id
            for session_id, seen in self._last_seen.items()
            if now - seen > self.ttl_seconds and not self._sessions[session_id].state.busy
        ]
        for session_id in expired:
            del self._sessions[session_id]
            del self._last_seen[session_id]
        if expired:
            logger.info(f"Expired {len(expired)} idle session(s)")

    def create(self, agent: BaseAgent) -> PipelineController:
        """Start a new idle session driven by ``agent``."""
        session_id = str(uuid.uuid4())
        controller = PipelineController(agent, session_id=session_id)
        with self._lock:
            now = self.clock()
            self._evict_expired(now)
            self._sessions[session_id] = controller
            self._last_seen[session_id] = now
        return controller

    def get(self, session_id: str) -> PipelineController:
        """Return the controller for ``session_id`` and refresh its expiry."""
        with self._lock:
            now = self.clock()
            self._evict_expired(now)
            controller = self._sessions.get(session_id)
            if controller is not None:
                self._last_seen[session_id] = now
        if controller is None:
            msg = f"Session {session_id} not found"
            raise SessionNotFoundError(msg)
        return controller

    def discard(self, session_id: str) -> None:
        """Reset and forget a session; refused while a run is in flight."""
        controller = self.get(session_id)
        controller.reset()
        with self._lock:
            self._sessions.pop(session_id, None)
            self._last_seen.pop(session_id, None)

    def __contains__(self, session_id: str) -> bool:
        """Whether ``session_id`` is held, expired or not."""
        with self._lock:
            return session_id in self._sessions


_store: SessionStore | None = None


def get_session_store() -> SessionStore:
    """Return the process-wide session store."""
    global _store  # noqa: PLW0603
    if _store is None:
        _store = SessionStore(ttl_seconds=get_settings().session_ttl_seconds)
    return _store
