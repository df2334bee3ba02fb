"""Adapter Protocol definitions."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from term_relay.types import SSHCredentials, SSHTarget


@runtime_checkable
class SessionAdapter(Protocol):
    """Interactive shell on a remote host, seen as a byte stream."""

    @property
    def ready(self) -> bool: ...

    async def open(self, target: SSHTarget, credentials: SSHCredentials) -> None: ...

    def read(self) -> AsyncIterator[bytes]: ...

    async def write(self, data: bytes) -> None: ...

    async def resize(self, rows: int, cols: int) -> None: ...

    async def close(self) -> None: ...


@runtime_checkable
class DuplexChannel(Protocol):
    """Client-facing message channel (a WebSocket connection in production)."""

    async def send(self, message: str) -> None: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


AdapterFactory = Callable[[], SessionAdapter]
