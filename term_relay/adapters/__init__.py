"""Session adapters: the remote-shell side of a relay session."""

from term_relay.adapters.base import AdapterFactory, DuplexChannel, SessionAdapter
from term_relay.adapters.loopback import LoopbackSessionAdapter
from term_relay.adapters.ssh import SSHSessionAdapter

__all__ = [
    "AdapterFactory",
    "DuplexChannel",
    "LoopbackSessionAdapter",
    "SSHSessionAdapter",
    "SessionAdapter",
]
