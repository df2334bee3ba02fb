"""Registry of live relay sessions.

Owned by the gateway; maps each duplex channel's session id to its
:class:`~term_relay.session.RelaySession`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from term_relay.session import RelaySession

logger = logging.getLogger(__name__)


@dataclass
class RegistryStats:
    """Registry statistics."""

    total_sessions: int
    sessions_by_state: dict[str, int] = field(default_factory=dict)
    bytes_in: int = 0
    bytes_out: int = 0


class SessionRegistry:
    """Lock-guarded mapping of session ids to relay sessions.

    Inserts happen when a channel is accepted, removals from each session's
    teardown path; both take the same lock.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, RelaySession] = {}
        self._lock = asyncio.Lock()

    async def add(self, session: RelaySession) -> None:
        async with self._lock:
            if session.session_id in self._sessions:
                raise ValueError(f"Session {session.session_id} is already registered")
            self._sessions[session.session_id] = session

    async def remove(self, session_id: str) -> RelaySession | None:
        """Remove and return a session. Returns None if it was not registered."""
        async with self._lock:
            return self._sessions.pop(session_id, None)

    def get(self, session_id: str) -> RelaySession | None:
        return self._sessions.get(session_id)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get_stats(self) -> RegistryStats:
        """Get registry statistics."""
        by_state: dict[str, int] = {}
        bytes_in = 0
        bytes_out = 0

        for session in self._sessions.values():
            state = str(session.state)
            by_state[state] = by_state.get(state, 0) + 1
            bytes_in += session.bytes_in
            bytes_out += session.bytes_out

        return RegistryStats(
            total_sessions=len(self._sessions),
            sessions_by_state=by_state,
            bytes_in=bytes_in,
            bytes_out=bytes_out,
        )

    async def close_all(self) -> None:
        """Close every registered session and empty the registry."""
        async with self._lock:
            sessions = list(self._sessions.items())
            self._sessions.clear()

        for session_id, session in sessions:
            try:
                await session.shutdown()
            except Exception:
                logger.exception("Error closing session %s", session_id)
