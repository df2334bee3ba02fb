"""Error classes, enums, and core types for term-relay."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import StrEnum


class ErrorCode(StrEnum):
    """Error codes carried by relay errors and ``error`` frames."""

    AUTH_FAILED = "AUTH_FAILED"
    NETWORK_ERROR = "NETWORK_ERROR"
    PROTOCOL_ERROR = "PROTOCOL_ERROR"
    CHANNEL_ERROR = "CHANNEL_ERROR"


class SessionState(StrEnum):
    """Lifecycle state of a relay session."""

    AWAITING_CONNECT = "awaiting_connect"
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSED = "closed"


class LoggingMode(StrEnum):
    """Logging mode for session events."""

    STANDARD = "standard"
    VERBOSE = "verbose"


class RelayError(Exception):
    """Base error class for all relay operations."""

    def __init__(
        self,
        message: str,
        code: str,
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.operation = operation


class AuthError(RelayError):
    """The SSH server rejected the supplied credentials."""

    def __init__(self, message: str, operation: str | None = None) -> None:
        super().__init__(message, ErrorCode.AUTH_FAILED, operation)


class NetworkError(RelayError):
    """The SSH host was unreachable or the attempt timed out."""

    def __init__(self, message: str, operation: str | None = None) -> None:
        super().__init__(message, ErrorCode.NETWORK_ERROR, operation)


class ProtocolError(RelayError):
    """Malformed client frame or unexpected SSH-layer event."""

    def __init__(self, message: str, operation: str | None = None) -> None:
        super().__init__(message, ErrorCode.PROTOCOL_ERROR, operation)


class ChannelError(RelayError):
    """The client-facing duplex channel failed."""

    def __init__(self, message: str, operation: str | None = None) -> None:
        super().__init__(message, ErrorCode.CHANNEL_ERROR, operation)


@dataclass
class StateChangeEvent:
    """Event emitted when a session changes state."""

    session_id: str
    from_state: SessionState
    to_state: SessionState
    timestamp: float
    error: Exception | None = None


@dataclass
class SSHTarget:
    """Remote host and terminal parameters for one SSH session."""

    host: str
    username: str
    port: int = 22
    rows: int = 24
    cols: int = 80
    term_type: str = "xterm-256color"

    @property
    def address(self) -> str:
        return f"{self.username}@{self.host}:{self.port}"


@dataclass
class SSHCredentials:
    """Authentication material for one SSH session.

    Exactly one of ``password`` and ``private_key`` must be set. Secret
    fields are excluded from ``repr`` so they never end up in log output.
    """

    password: str | None = field(default=None, repr=False)
    private_key: str | None = field(default=None, repr=False)
    passphrase: str | None = field(default=None, repr=False)

    @property
    def method(self) -> str:
        return "password" if self.password is not None else "private-key"

    def validate(self) -> None:
        """Raise ProtocolError unless exactly one auth method is populated."""
        has_password = bool(self.password)
        has_key = bool(self.private_key)
        if has_password and has_key:
            raise ProtocolError(
                "Supply either a password or a private key, not both",
                "connect",
            )
        if not has_password and not has_key:
            raise ProtocolError(
                "A password or a private key is required",
                "connect",
            )


@dataclass
class RelayServerConfig:
    """Configuration for the relay server and its sessions."""

    host: str = "0.0.0.0"
    port: int = 5001
    path: str = "/ws/ssh"
    health_path: str | None = "/api/check"
    connect_timeout_ms: int = 10000
    cleanup_timeout_ms: int = 5000
    keepalive_interval_ms: int = 30000
    keepalive_count_max: int = 3
    known_hosts: str | None = None
    default_rows: int = 24
    default_cols: int = 80
    term_type: str = "xterm-256color"
    logging_mode: LoggingMode = LoggingMode.STANDARD
    log_file: str | None = None

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> RelayServerConfig:
        """Build a config from environment variables.

        ``PORT`` sets the listening port; every other field can be overridden
        with a ``TERM_RELAY_`` prefixed variable. Unparseable numbers fall
        back to the default.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def _int(name: str, default: int) -> int:
            raw = env.get(name)
            try:
                return int(raw) if raw is not None else default
            except ValueError:
                return default

        port = _int("PORT", defaults.port)
        try:
            mode = LoggingMode(env.get("TERM_RELAY_LOGGING_MODE", defaults.logging_mode))
        except ValueError:
            mode = defaults.logging_mode

        return cls(
            host=env.get("TERM_RELAY_HOST", defaults.host),
            port=_int("TERM_RELAY_PORT", port),
            path=env.get("TERM_RELAY_PATH", defaults.path),
            health_path=env.get("TERM_RELAY_HEALTH_PATH", defaults.health_path) or None,
            connect_timeout_ms=_int(
                "TERM_RELAY_CONNECT_TIMEOUT_MS", defaults.connect_timeout_ms
            ),
            cleanup_timeout_ms=_int(
                "TERM_RELAY_CLEANUP_TIMEOUT_MS", defaults.cleanup_timeout_ms
            ),
            keepalive_interval_ms=_int(
                "TERM_RELAY_KEEPALIVE_INTERVAL_MS", defaults.keepalive_interval_ms
            ),
            keepalive_count_max=_int(
                "TERM_RELAY_KEEPALIVE_COUNT_MAX", defaults.keepalive_count_max
            ),
            known_hosts=env.get("TERM_RELAY_KNOWN_HOSTS", defaults.known_hosts),
            default_rows=_int("TERM_RELAY_DEFAULT_ROWS", defaults.default_rows),
            default_cols=_int("TERM_RELAY_DEFAULT_COLS", defaults.default_cols),
            term_type=env.get("TERM_RELAY_TERM_TYPE", defaults.term_type),
            logging_mode=mode,
            log_file=env.get("TERM_RELAY_LOG_FILE", defaults.log_file),
        )


LIFECYCLE_EVENTS: frozenset[str] = frozenset(
    {"opened", "connecting", "connected", "closed", "failed"}
)
