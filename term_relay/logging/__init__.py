from term_relay.logging.array import ArraySessionLogger
from term_relay.logging.console import ConsoleSessionLogger
from term_relay.logging.types import SessionEventLogger, SessionLogEntry, should_log_event

__all__ = [
    "ArraySessionLogger",
    "ConsoleSessionLogger",
    "SessionEventLogger",
    "SessionLogEntry",
    "should_log_event",
]
