# syncshell Session Snapshot Store
# Last-known session list with change detection

import logging
from typing import Callable, Optional

from syncshell.engine.models import SyncSession
from syncshell.sync.conflicts import conflict_fingerprint

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


def session_state_key(session: SyncSession) -> tuple:
    """Fields whose change warrants a redraw."""
    return (
        session.status,
        session.paused,
        session.successful_cycles,
        session.last_error,
        session.alpha.connected,
        session.beta.connected,
        conflict_fingerprint(session.conflicts),
        session.staging_received_size,
    )


def sessions_changed(previous: list[SyncSession], current: list[SyncSession]) -> bool:
    """
    Compare two snapshots by identifier.

    Order within either list is irrelevant.
    """
    if len(previous) != len(current):
        return True
    old = {session.identifier: session for session in previous}
    for session in current:
        before = old.get(session.identifier)
        if before is None:
            return True
        if session_state_key(before) != session_state_key(session):
            return True
    return False


class SessionSnapshotStore:
    """
    Holds the last session list seen from the engine.

    The retained list is replaced, and listeners notified, only when an
    update differs from it. Polling an idle engine therefore produces no
    notifications.
    """

    def __init__(self):
        self._sessions: list[SyncSession] = []
        self._listeners: list[Listener] = []
        self._last_error: Optional[str] = None
        self._loaded = False

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def loaded(self) -> bool:
        return self._loaded

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a change callback; returns a function that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Snapshot listener failed")

    def update(self, sessions: list[SyncSession]) -> bool:
        """
        Offer a freshly polled session list.

        Returns:
            True if the list differed and listeners were notified.
        """
        error_cleared = self._last_error is not None
        self._last_error = None
        changed = not self._loaded or error_cleared or sessions_changed(self._sessions, sessions)
        self._loaded = True
        if not changed:
            return False
        self._sessions = list(sessions)
        self._notify()
        return True

    def merge_session(self, session: SyncSession) -> bool:
        """
        Apply a streamed update for one known session.

        Updates for identifiers not in the current snapshot are ignored;
        the next poll picks them up.
        """
        for index, existing in enumerate(self._sessions):
            if existing.identifier != session.identifier:
                continue
            if session_state_key(existing) == session_state_key(session):
                return False
            sessions = list(self._sessions)
            sessions[index] = session
            self._sessions = sessions
            self._notify()
            return True
        return False

    def record_error(self, message: str) -> bool:
        """
        Remember a failed load.

        Listeners are notified only when the message differs from the last
        recorded one.
        """
        if message == self._last_error:
            return False
        self._last_error = message
        self._notify()
        return True

    def get_sessions(self) -> list[SyncSession]:
        return list(self._sessions)

    def get_session_by_id(self, identifier: str) -> Optional[SyncSession]:
        for session in self._sessions:
            if session.identifier == identifier:
                return session
        return None
