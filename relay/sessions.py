"""
Session registry for the relay.

Maps a session token to its `Session` record. Every method is synchronous:
callers on the event loop get atomic lookups and mutations without a lock,
and no caller can yield halfway through a slot update.

The registry only holds non-owning references to connections; the transport
layer decides when a connection is closed.
"""

import logging
import time
from typing import Callable, Dict, Iterator, Optional

from .types import Session


logger = logging.getLogger("relay.sessions")


class SessionRegistry:
    """
    Single source of truth for pairing state.

    Key behaviors:
    - A session is created only on request (the pairing protocol decides when)
    - Removal is idempotent
    - Iteration works on a snapshot so sweeps may remove while iterating
    """

    def __init__(self, now: Optional[Callable[[], float]] = None):
        """
        Args:
            now: Time function (defaults to time.time, injectable for testing)
        """
        self._sessions: Dict[str, Session] = {}
        self._now = now or time.time

    def get(self, session_id: str) -> Optional[Session]:
        """Get a session record by token."""
        return self._sessions.get(session_id)

    def create(self, session_id: str) -> Session:
        """Create an empty session stamped with the current time."""
        session = Session(session_id=session_id, created_at=self._now())
        self._sessions[session_id] = session
        logger.info(f"Session created [{session_id[:8]}]")
        return session

    def remove(self, session_id: str) -> Optional[Session]:
        """Remove a session. Returns the removed record, if any."""
        session = self._sessions.pop(session_id, None)
        if session is not None:
            logger.info(f"Session removed [{session_id[:8]}]")
        return session

    def snapshot(self) -> Dict[str, Session]:
        """Copy of all sessions (for iteration)."""
        return dict(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._sessions))

    def __len__(self) -> int:
        return len(self._sessions)

    @property
    def size(self) -> int:
        """Number of live sessions."""
        return len(self._sessions)

    def now(self) -> float:
        return self._now()

    def clear_all(self) -> int:
        """Clear all sessions. Returns count of cleared sessions."""
        count = len(self._sessions)
        self._sessions.clear()
        logger.info(f"Cleared all {count} sessions")
        return count
