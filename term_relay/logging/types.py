"""Session event logging types and protocols."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol

from term_relay.types import LIFECYCLE_EVENTS, LoggingMode

SessionEvent = Literal[
    "opened",
    "connecting",
    "connected",
    "closed",
    "failed",
    "data",
    "resize",
]


@dataclass
class SessionLogEntry:
    """Entry representing one logged session event.

    Never carries credentials or terminal payloads, only sizes.
    """

    timestamp: float
    event: SessionEvent
    session_id: str
    target: str | None
    success: bool
    duration_ms: float
    bytes_in: int = 0
    bytes_out: int = 0
    detail: str | None = None
    error: str | None = None


class SessionEventLogger(Protocol):
    """Interface for session event loggers."""

    @property
    def mode(self) -> LoggingMode: ...

    def log(self, entry: SessionLogEntry) -> None: ...


def should_log_event(event: str, mode: LoggingMode) -> bool:
    """Determine if an event should be logged based on mode."""
    if mode == LoggingMode.VERBOSE:
        return True
    return event in LIFECYCLE_EVENTS
