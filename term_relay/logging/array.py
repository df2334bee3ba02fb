"""In-memory array-based session event logger."""

from __future__ import annotations

from term_relay.logging.types import SessionLogEntry
from term_relay.types import LoggingMode


class ArraySessionLogger:
    """In-memory array-based session event logger.

    Stores all logged events in a list for later retrieval.
    Useful for testing, debugging, or building audit trails.
    """

    def __init__(self, mode: LoggingMode = LoggingMode.STANDARD) -> None:
        self._mode = mode
        self._entries: list[SessionLogEntry] = []

    @property
    def mode(self) -> LoggingMode:
        return self._mode

    def log(self, entry: SessionLogEntry) -> None:
        self._entries.append(entry)

    def get_entries(self) -> list[SessionLogEntry]:
        """Get all logged entries."""
        return list(self._entries)

    def get_entries_by_event(self, event: str) -> list[SessionLogEntry]:
        """Get entries filtered by event type."""
        return [e for e in self._entries if e.event == event]

    def get_entries_by_session(self, session_id: str) -> list[SessionLogEntry]:
        return [e for e in self._entries if e.session_id == session_id]

    def get_entries_by_status(self, success: bool) -> list[SessionLogEntry]:
        """Get entries filtered by success status."""
        return [e for e in self._entries if e.success is success]

    @property
    def length(self) -> int:
        """Get the count of logged entries."""
        return len(self._entries)

    def clear(self) -> None:
        """Clear all logged entries."""
        self._entries.clear()
