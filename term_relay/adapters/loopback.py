"""In-memory loopback adapter.

Echoes every written chunk back to its read stream. Useful for testing the
relay end to end without an SSH server.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from term_relay.types import ProtocolError, SSHCredentials, SSHTarget

_EOF = object()


class LoopbackSessionAdapter:
    """Session adapter whose remote shell is a byte-for-byte echo."""

    def __init__(self, greeting: bytes | None = None) -> None:
        self._greeting = greeting
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._ready = False
        self._closed = False
        self.target: SSHTarget | None = None
        self.written: list[bytes] = []
        self.resizes: list[tuple[int, int]] = []

    @property
    def ready(self) -> bool:
        return self._ready

    async def open(self, target: SSHTarget, credentials: SSHCredentials) -> None:
        credentials.validate()
        self.target = target
        self.resizes.append((target.rows, target.cols))
        self._ready = True
        if self._greeting:
            self._queue.put_nowait(self._greeting)

    async def read(self) -> AsyncIterator[bytes]:
        while True:
            item = await self._queue.get()
            if item is _EOF:
                return
            yield item

    async def write(self, data: bytes) -> None:
        if not self._ready:
            raise ProtocolError("Loopback shell is not open", "write")
        self.written.append(data)
        self._queue.put_nowait(data)

    async def resize(self, rows: int, cols: int) -> None:
        if not self._ready:
            return
        self.resizes.append((rows, cols))

    def hang_up(self) -> None:
        """End the read stream as if the remote shell exited."""
        self._queue.put_nowait(_EOF)

    async def close(self) -> None:
        self._ready = False
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_EOF)

    @property
    def closed(self) -> bool:
        return self._closed
