"""SSH session adapter backed by asyncssh.

Opens one authenticated SSH connection with an interactive PTY shell and
exposes it as a byte stream. stderr is merged into stdout so the client sees
a single output path.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import asyncssh

from term_relay.types import (
    AuthError,
    NetworkError,
    ProtocolError,
    SSHCredentials,
    SSHTarget,
)

logger = logging.getLogger(__name__)

Connector = Callable[..., Awaitable[Any]]

READ_CHUNK_SIZE = 4096


class SSHSessionAdapter:
    """Interactive SSH shell adapter.

    The SSH connection is made through ``connector``, which defaults to
    :func:`asyncssh.connect` and can be replaced to run without a network.
    """

    def __init__(
        self,
        connect_timeout: float = 10.0,
        keepalive_interval: float = 30.0,
        keepalive_count_max: int = 3,
        known_hosts: str | None = None,
        connector: Connector | None = None,
    ) -> None:
        self._connect_timeout = connect_timeout
        self._keepalive_interval = keepalive_interval
        self._keepalive_count_max = keepalive_count_max
        self._known_hosts = known_hosts
        self._connector = connector or asyncssh.connect
        self._ssh_conn: asyncssh.SSHClientConnection | None = None
        self._process: asyncssh.SSHClientProcess | None = None
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    async def open(self, target: SSHTarget, credentials: SSHCredentials) -> None:
        """Connect, authenticate and start a PTY shell.

        Raises:
            ProtocolError: If the credentials do not name exactly one auth
                method, or the SSH layer fails unexpectedly.
            AuthError: If the server rejects the credentials or the private
                key cannot be loaded.
            NetworkError: If the host is unreachable or the attempt times out.
        """
        credentials.validate()
        if self._ssh_conn is not None:
            raise ProtocolError("SSH session already open", "open")

        try:
            await asyncio.wait_for(
                self._connect(target, credentials),
                timeout=self._connect_timeout,
            )
        except TimeoutError as exc:
            await self.close()
            raise NetworkError(
                f"Timed out connecting to {target.host}:{target.port}", "open"
            ) from exc
        except asyncssh.PermissionDenied as exc:
            await self.close()
            raise AuthError(f"Authentication failed: {exc.reason}", "open") from exc
        except (asyncssh.KeyImportError, asyncssh.KeyEncryptionError) as exc:
            await self.close()
            raise AuthError(f"Invalid private key: {exc}", "open") from exc
        except asyncssh.Error as exc:
            await self.close()
            raise ProtocolError(f"SSH connection error: {exc}", "open") from exc
        except OSError as exc:
            await self.close()
            raise NetworkError(
                f"Cannot reach {target.host}:{target.port}: {exc.strerror or exc}",
                "open",
            ) from exc

        self._ready = True
        logger.info("SSH shell ready on %s", target.address)

    async def _connect(self, target: SSHTarget, credentials: SSHCredentials) -> None:
        connect_opts: dict[str, Any] = {
            "port": target.port,
            "username": target.username,
            "known_hosts": self._known_hosts,
            "agent_path": None,
            "keepalive_interval": self._keepalive_interval,
            "keepalive_count_max": self._keepalive_count_max,
        }
        if credentials.password:
            connect_opts["password"] = credentials.password
            connect_opts["client_keys"] = None
        else:
            key = asyncssh.import_private_key(
                credentials.private_key, credentials.passphrase
            )
            connect_opts["client_keys"] = [key]
            connect_opts["password"] = None

        logger.info("SSH connecting to %s", target.address)
        self._ssh_conn = await self._connector(target.host, **connect_opts)

        self._process = await self._ssh_conn.create_process(
            term_type=target.term_type,
            term_size=(target.cols, target.rows),
            stderr=asyncssh.STDOUT,
            encoding=None,
        )

    async def read(self) -> AsyncIterator[bytes]:
        """Yield output chunks until the remote shell closes.

        Raises:
            ProtocolError: If the SSH layer fails while reading.
        """
        process = self._process
        if process is None:
            return
        while True:
            try:
                chunk = await process.stdout.read(READ_CHUNK_SIZE)
            except asyncssh.ConnectionLost:
                logger.warning("SSH connection lost while reading")
                return
            except asyncssh.Error as exc:
                raise ProtocolError(f"SSH read error: {exc}", "read") from exc
            if not chunk:
                return
            yield chunk

    async def write(self, data: bytes) -> None:
        """Send raw bytes to the shell's stdin without any translation."""
        if self._process is None or not self._ready:
            raise ProtocolError("SSH shell is not open", "write")
        try:
            self._process.stdin.write(data)
            await self._process.stdin.drain()
        except (asyncssh.Error, BrokenPipeError) as exc:
            raise ProtocolError(f"Stream write error: {exc}", "write") from exc

    async def resize(self, rows: int, cols: int) -> None:
        """Change the PTY window size. No-op before the shell exists."""
        if self._process is None:
            return
        try:
            self._process.change_terminal_size(cols, rows)
        except (asyncssh.Error, OSError) as exc:
            raise ProtocolError(f"Resize error: {exc}", "resize") from exc
        logger.debug("Terminal resized to %sx%s", rows, cols)

    async def close(self) -> None:
        """Close the shell and the SSH connection. Safe to call repeatedly."""
        self._ready = False
        if self._process:
            self._process.close()
            self._process = None
        if self._ssh_conn:
            conn = self._ssh_conn
            self._ssh_conn = None
            conn.close()
            await conn.wait_closed()
