"""term-relay: a WebSocket-to-SSH terminal relay."""

from term_relay.adapters import LoopbackSessionAdapter, SessionAdapter, SSHSessionAdapter
from term_relay.gateway import ConnectionGateway
from term_relay.registry import RegistryStats, SessionRegistry
from term_relay.session import RelaySession
from term_relay.types import (
    AuthError,
    ChannelError,
    ErrorCode,
    LoggingMode,
    NetworkError,
    ProtocolError,
    RelayError,
    RelayServerConfig,
    SessionState,
    SSHCredentials,
    SSHTarget,
)

__version__ = "0.1.0"

__all__ = [
    "AuthError",
    "ChannelError",
    "ConnectionGateway",
    "ErrorCode",
    "LoggingMode",
    "LoopbackSessionAdapter",
    "NetworkError",
    "ProtocolError",
    "RegistryStats",
    "RelayError",
    "RelayServerConfig",
    "RelaySession",
    "SSHCredentials",
    "SSHSessionAdapter",
    "SSHTarget",
    "SessionAdapter",
    "SessionRegistry",
    "SessionState",
    "__version__",
]
