"""Relay session: one duplex channel spliced to one SSH shell.

The client→remote direction is driven by whoever reads the channel (the
gateway's connection handler calls :meth:`RelaySession.handle_data` and
:meth:`RelaySession.handle_resize` in arrival order). The remote→client
direction runs in a single task per session that opens the adapter and then
pumps its output to the channel.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import time
import uuid
from typing import TYPE_CHECKING

import websockets

from term_relay.logging.types import SessionLogEntry, should_log_event
from term_relay.protocol import (
    encode_close,
    encode_connected,
    encode_data,
    encode_error,
)
from term_relay.status import SessionStateManager
from term_relay.types import (
    ChannelError,
    ProtocolError,
    RelayError,
    SessionState,
    StateChangeEvent,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from term_relay.adapters.base import AdapterFactory, DuplexChannel, SessionAdapter
    from term_relay.logging.types import SessionEvent, SessionEventLogger
    from term_relay.protocol import ConnectFrame, DataFrame, ResizeFrame
    from term_relay.status import StateChangeCallback, Unsubscribe
    from term_relay.types import SSHCredentials, SSHTarget

logger = logging.getLogger(__name__)

_STATE_EVENTS: dict[SessionState, SessionEvent] = {
    SessionState.CONNECTING: "connecting",
    SessionState.ACTIVE: "connected",
    SessionState.CLOSED: "closed",
}


class RelaySession:
    """Bidirectional relay between a client channel and a session adapter."""

    def __init__(
        self,
        channel: DuplexChannel,
        adapter_factory: AdapterFactory,
        *,
        session_id: str | None = None,
        cleanup_timeout: float = 5.0,
        events_logger: SessionEventLogger | None = None,
    ) -> None:
        self._session_id = session_id or uuid.uuid4().hex
        self._channel = channel
        self._adapter_factory = adapter_factory
        self._cleanup_timeout = cleanup_timeout
        self._events_logger = events_logger
        self._state_manager = SessionStateManager(self._session_id)
        self._adapter: SessionAdapter | None = None
        self._task: asyncio.Task[None] | None = None
        self._target: SSHTarget | None = None
        self._channel_open = True
        self._released = asyncio.Event()
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.created_at = time.time()
        self.bytes_in = 0
        self.bytes_out = 0

        self._state_manager.on_state_change(self._log_state_change)
        self._log_event("opened")

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def state(self) -> SessionState:
        return self._state_manager.state

    @property
    def target(self) -> SSHTarget | None:
        return self._target

    @property
    def closed(self) -> bool:
        return self.state == SessionState.CLOSED

    def on_state_change(self, cb: StateChangeCallback) -> Unsubscribe:
        return self._state_manager.on_state_change(cb)

    async def connect(self, frame: ConnectFrame) -> None:
        """Start opening the SSH session described by ``frame``.

        Returns once the open has been scheduled; its outcome reaches the
        client as a ``connected`` or ``error`` frame.

        Raises:
            ProtocolError: If the session is past the connect phase.
        """
        if self.state != SessionState.AWAITING_CONNECT:
            raise ProtocolError("Session is already connected", "connect")

        self._target = frame.target
        self._state_manager.set_state(SessionState.CONNECTING)
        self._task = asyncio.create_task(
            self._run(frame.target, frame.credentials),
            name=f"relay-session-{self._session_id[:8]}",
        )

    async def handle_data(self, frame: DataFrame) -> None:
        """Forward client keystrokes verbatim to the remote shell."""
        adapter = self._adapter
        if self.state != SessionState.ACTIVE or adapter is None or not adapter.ready:
            logger.debug("Session %s: dropping data frame in state %s", self._session_id, self.state)
            return

        payload = frame.payload
        self.bytes_in += len(payload)
        self._log_event("data", detail=f"{len(payload)} bytes to remote")
        try:
            await adapter.write(payload)
        except RelayError as exc:
            await self.fail(exc)

    async def handle_resize(self, frame: ResizeFrame) -> None:
        """Resize the remote PTY. Dropped until the shell is ready."""
        adapter = self._adapter
        if self.state != SessionState.ACTIVE or adapter is None or not adapter.ready:
            logger.debug("Session %s: dropping resize before shell is ready", self._session_id)
            return

        self._log_event("resize", detail=f"{frame.rows}x{frame.cols}")
        try:
            await adapter.resize(frame.rows, frame.cols)
        except RelayError as exc:
            await self.fail(exc)

    async def send_error(self, error: RelayError) -> None:
        """Report a non-fatal error to the client, keeping the session alive."""
        if not self._channel_open:
            return
        try:
            await self._send(encode_error(str(error), error.code))
        except ChannelError:
            self._channel_open = False
            logger.debug("Session %s: channel gone before error frame", self._session_id)

    async def fail(self, error: Exception) -> None:
        """Report ``error`` to the client and tear the session down."""
        if not self._begin_close(error):
            if asyncio.current_task() is not self._task:
                await self.wait_closed()
            return

        if isinstance(error, ChannelError):
            self._channel_open = False
        logger.warning("Session %s failed: %s", self._session_id, error)

        code = error.code if isinstance(error, RelayError) else None
        if self._channel_open:
            try:
                await self._send(encode_error(str(error), code))
            except ChannelError:
                self._channel_open = False
        await self._release(close_channel=True)

    async def close(self) -> None:
        """Tear down after the client closed the channel.

        Cancels any pending SSH open or read and closes the adapter, bounded
        by the cleanup timeout.
        """
        self._channel_open = False
        if not self._begin_close():
            await self.wait_closed()
            return
        await self._release(close_channel=False)

    async def wait_closed(self) -> None:
        """Wait, at most the cleanup timeout, until resources are released."""
        try:
            await asyncio.wait_for(self._released.wait(), timeout=self._cleanup_timeout)
        except TimeoutError:
            logger.warning("Session %s: cleanup did not finish in time", self._session_id)

    async def _run(self, target: SSHTarget, credentials: SSHCredentials) -> None:
        try:
            await self._open(target, credentials)
            if self.closed:
                return
            await self._pump()
        except RelayError as exc:
            await self.fail(exc)
        except Exception as exc:
            logger.exception("Session %s: unexpected relay failure", self._session_id)
            await self.fail(ProtocolError(f"Internal error: {exc}", "relay"))

    async def _open(self, target: SSHTarget, credentials: SSHCredentials) -> None:
        adapter = self._adapter_factory()
        self._adapter = adapter
        await adapter.open(target, credentials)

        if not self._state_manager.set_state(SessionState.ACTIVE):
            # Closed while the open was in flight
            await adapter.close()
            return
        await self._send(encode_connected())

    async def _pump(self) -> None:
        adapter = self._adapter
        if adapter is None:
            return
        async for chunk in adapter.read():
            if self.closed:
                return
            self.bytes_out += len(chunk)
            text = self._decoder.decode(chunk)
            if text:
                await self._send(encode_data(text))

        tail = self._decoder.decode(b"", final=True)
        if tail and not self.closed:
            await self._send(encode_data(tail))
        logger.info("Session %s: remote shell closed", self._session_id)
        await self.shutdown()

    async def shutdown(self) -> None:
        """Send a ``close`` frame, then release the adapter and the channel."""
        if not self._begin_close():
            if asyncio.current_task() is not self._task:
                await self.wait_closed()
            return
        try:
            await self._send(encode_close())
        except ChannelError:
            self._channel_open = False
        await self._release(close_channel=True)

    def _begin_close(self, error: Exception | None = None) -> bool:
        # Synchronous so that exactly one caller wins the race to close.
        return self._state_manager.set_state(SessionState.CLOSED, error)

    async def _release(self, close_channel: bool) -> None:
        try:
            task = self._task
            if task is not None and task is not asyncio.current_task() and not task.done():
                task.cancel()
                await asyncio.wait([task], timeout=self._cleanup_timeout)

            if self._adapter is not None:
                await self._close_with_timeout(self._adapter.close(), "adapter")

            if close_channel and self._channel_open:
                self._channel_open = False
                await self._close_with_timeout(self._channel.close(), "channel")
        finally:
            self._released.set()
            self._state_manager.clear_listeners()

    async def _close_with_timeout(self, closing: Awaitable[None], what: str) -> None:
        try:
            await asyncio.wait_for(closing, timeout=self._cleanup_timeout)
        except TimeoutError:
            logger.warning("Session %s: %s close timed out", self._session_id, what)
        except Exception:
            logger.exception("Session %s: error closing %s", self._session_id, what)

    async def _send(self, message: str) -> None:
        if not self._channel_open:
            raise ChannelError("Channel is closed", "send")
        try:
            await self._channel.send(message)
        except websockets.ConnectionClosed as exc:
            self._channel_open = False
            raise ChannelError(f"Channel closed: {exc}", "send") from exc

    def _log_state_change(self, event: StateChangeEvent) -> None:
        logger.info(
            "Session %s: %s -> %s",
            self._session_id,
            event.from_state,
            event.to_state,
        )
        name = _STATE_EVENTS.get(event.to_state)
        if name == "closed" and event.error is not None:
            name = "failed"
        if name:
            self._log_event(name, error=event.error)

    def _log_event(
        self,
        event: SessionEvent,
        detail: str | None = None,
        error: Exception | None = None,
    ) -> None:
        events_logger = self._events_logger
        if events_logger is None or not should_log_event(event, events_logger.mode):
            return
        events_logger.log(
            SessionLogEntry(
                timestamp=time.time(),
                event=event,
                session_id=self._session_id,
                target=self._target.address if self._target else None,
                success=error is None,
                duration_ms=(time.time() - self.created_at) * 1000,
                bytes_in=self.bytes_in,
                bytes_out=self.bytes_out,
                detail=detail,
                error=str(error) if error else None,
            )
        )
