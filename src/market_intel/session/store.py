"""
In-memory session store with expiry and explicit invalidation.

Owned by one SessionManager. The clock is injectable so expiry can be
tested deterministically.
"""

import time
from typing import Callable

from market_intel.core.models import Session, SessionState

Clock = Callable[[], float]


class SessionStore:
    """
    Holds at most one session plus its lifecycle state.

    A session is served only while `now < acquired_at + ttl` and no
    authorization-denied response has invalidated it.
    """

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self.clock = clock
        self._session: Session | None = None
        self._invalidated = False
        self._state = SessionState.UNAUTHENTICATED

    @property
    def state(self) -> SessionState:
        """Current lifecycle state, refreshed against the clock."""
        if self._state == SessionState.ACTIVE and self._session is not None:
            if self._session.is_expired(self.clock()):
                self._state = SessionState.EXPIRED
        return self._state

    @property
    def session(self) -> Session | None:
        """The stored session regardless of validity."""
        return self._session

    def get_valid(self) -> Session | None:
        """Return the cached session if it may still be used."""
        if self._session is None or self._invalidated:
            return None
        if self._session.is_expired(self.clock()):
            self._state = SessionState.EXPIRED
            return None
        return self._session

    def put(self, session: Session) -> None:
        """Replace the cached session with a freshly captured one."""
        self._session = session
        self._invalidated = False
        self._state = SessionState.ACTIVE

    def mark(self, state: SessionState) -> None:
        """Record a transition driven by the login sequence."""
        self._state = state

    def invalidate(self, session: Session | None = None) -> bool:
        """
        Mark the cached session unusable.

        Args:
            session: Only invalidate if this is still the cached session.
                A stale reference (already replaced) is ignored.

        Returns:
            True if the cached session was invalidated
        """
        if self._session is None:
            return False
        if session is not None and session is not self._session:
            return False
        self._invalidated = True
        self._state = SessionState.INVALIDATED
        return True

    def clear(self) -> None:
        self._session = None
        self._invalidated = False
        self._state = SessionState.UNAUTHENTICATED
