"""Client-side cache of the sessions of the current conversation target."""

import threading
from collections.abc import Iterable

from playground.models.session import SessionEntry
from playground.utils.logging import get_logger

logger = get_logger(__name__)


class SessionLedger:
    """Incrementally maintained session list.

    Sessions created by a turn are registered as soon as the backend announces
    them, so the list does not need a full reload after every turn. All
    mutations happen under a lock, so list refreshes and turn registrations
    never duplicate or lose entries.
    """

    def __init__(self, sessions: Iterable[SessionEntry] | None = None):
        """Initialize the ledger.

        Args:
            sessions: Sessions already known for the target, newest first
        """
        self._lock = threading.Lock()
        self._sessions: list[SessionEntry] = []
        self._turn_registrations: set[str] = set()
        self.active_session_id: str | None = None
        if sessions:
            self.replace_all(sessions)

    @property
    def sessions(self) -> tuple[SessionEntry, ...]:
        """Snapshot of the cached sessions, newest first."""
        with self._lock:
            return tuple(self._sessions)

    def get(self, session_id: str) -> SessionEntry | None:
        """Get a cached session by id."""
        with self._lock:
            return next((s for s in self._sessions if s.session_id == session_id), None)

    def begin_turn(self) -> None:
        """Start tracking the sessions registered by a new turn."""
        with self._lock:
            self._turn_registrations.clear()

    def on_new_session(self, session_id: str, title: str | None, created_at: int | float | None) -> bool:
        """Register a session announced by a run.

        Args:
            session_id: Session identifier
            title: Display title, the user message that started the session
            created_at: Creation time reported by the backend

        Returns:
            True if the session was added, False if it was already cached
        """
        with self._lock:
            self.active_session_id = session_id
            if any(s.session_id == session_id for s in self._sessions):
                return False

            self._sessions.insert(0, SessionEntry(session_id=session_id, title=title, created_at=created_at))
            self._turn_registrations.add(session_id)

        logger.info(f"Registered new session {session_id}")
        return True

    def on_turn_failed(self, session_id: str | None) -> bool:
        """Evict a session if the failed turn is the one that registered it.

        Returns:
            True if the session was removed
        """
        if not session_id:
            return False

        with self._lock:
            if session_id not in self._turn_registrations:
                return False
            self._turn_registrations.discard(session_id)
            self._sessions = [s for s in self._sessions if s.session_id != session_id]
            if self.active_session_id == session_id:
                self.active_session_id = None

        logger.info(f"Evicted session {session_id} after failed run")
        return True

    def replace_all(self, sessions: Iterable[SessionEntry]) -> None:
        """Replace the cache with a fresh listing from the backend.

        Sessions registered by the current turn that the listing does not know
        yet are kept at the front.
        """
        with self._lock:
            fresh: list[SessionEntry] = []
            seen: set[str] = set()
            for session in sessions:
                if session.session_id not in seen:
                    seen.add(session.session_id)
                    fresh.append(session)

            pending = [
                s for s in self._sessions if s.session_id in self._turn_registrations and s.session_id not in seen
            ]
            self._sessions = pending + fresh

    def remove(self, session_id: str) -> bool:
        """Remove a session after the backend confirmed its deletion."""
        with self._lock:
            before = len(self._sessions)
            self._sessions = [s for s in self._sessions if s.session_id != session_id]
            self._turn_registrations.discard(session_id)
            if self.active_session_id == session_id:
                self.active_session_id = None
            return len(self._sessions) != before

    def clear(self) -> None:
        """Forget every cached session."""
        with self._lock:
            self._sessions = []
            self._turn_registrations.clear()
            self.active_session_id = None
