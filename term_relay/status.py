"""Session state management with subscription callbacks."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from term_relay.types import SessionState, StateChangeEvent

logger = logging.getLogger(__name__)

StateChangeCallback = Callable[[StateChangeEvent], None]
Unsubscribe = Callable[[], None]

# Allowed transitions; CLOSED is terminal.
_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.AWAITING_CONNECT: frozenset(
        {SessionState.CONNECTING, SessionState.CLOSED}
    ),
    SessionState.CONNECTING: frozenset({SessionState.ACTIVE, SessionState.CLOSED}),
    SessionState.ACTIVE: frozenset({SessionState.CLOSED}),
    SessionState.CLOSED: frozenset(),
}


class SessionStateManager:
    """Holds a relay session's state and notifies listeners on transitions."""

    def __init__(self, session_id: str) -> None:
        self._session_id = session_id
        self._state = SessionState.AWAITING_CONNECT
        self._listeners: set[StateChangeCallback] = set()

    @property
    def state(self) -> SessionState:
        return self._state

    def can_transition(self, new_state: SessionState) -> bool:
        return new_state in _TRANSITIONS[self._state]

    def set_state(
        self,
        new_state: SessionState,
        error: Exception | None = None,
    ) -> bool:
        """Transition to ``new_state`` and notify listeners.

        Returns False, without notifying, if the transition is not allowed
        from the current state (including a repeat of the current state).
        """
        if not self.can_transition(new_state):
            return False

        event = StateChangeEvent(
            session_id=self._session_id,
            from_state=self._state,
            to_state=new_state,
            timestamp=time.time(),
            error=error,
        )

        self._state = new_state

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # A faulty listener must not break the session's lifecycle
                logger.exception("State change listener failed")
        return True

    def on_state_change(self, cb: StateChangeCallback) -> Unsubscribe:
        """Subscribe to state changes. Returns an unsubscribe function."""
        self._listeners.add(cb)

        def unsubscribe() -> None:
            self._listeners.discard(cb)

        return unsubscribe

    def clear_listeners(self) -> None:
        """Remove all listeners. Called once the session is closed."""
        self._listeners.clear()
