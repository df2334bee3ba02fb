"""Console-based session event logger."""

from __future__ import annotations

import sys
from datetime import UTC, datetime

from term_relay.logging.types import SessionLogEntry
from term_relay.types import LoggingMode


class ConsoleSessionLogger:
    """Console-based session event logger.

    Writes one line per session event to stderr.
    """

    def __init__(self, mode: LoggingMode = LoggingMode.STANDARD) -> None:
        self._mode = mode

    @property
    def mode(self) -> LoggingMode:
        return self._mode

    def log(self, entry: SessionLogEntry) -> None:
        timestamp = datetime.fromtimestamp(entry.timestamp, tz=UTC).isoformat()
        prefix = f"[{timestamp}] [{entry.session_id[:8]}]"
        status = "\u2713" if entry.success else "\u2717"
        target = f" {entry.target}" if entry.target else ""

        main_line = f"{prefix} {status} {entry.event}{target} ({entry.duration_ms:.0f}ms)"
        print(main_line, file=sys.stderr)

        if entry.event == "closed":
            print(
                f"  traffic: {entry.bytes_in}B in, {entry.bytes_out}B out",
                file=sys.stderr,
            )
        if entry.detail:
            print(f"  {entry.detail}", file=sys.stderr)
        if not entry.success and entry.error:
            print(f"  error: {self._truncate(entry.error, 200)}", file=sys.stderr)

    @staticmethod
    def _truncate(s: str, max_length: int) -> str:
        single_line = s.replace("\n", "\\n")
        if len(single_line) <= max_length:
            return single_line
        return f"{single_line[:max_length]}..."
