"""Connection gateway: accepts WebSocket channels and binds each to a session.

Only upgrade requests on the configured relay path are accepted; everything
else is answered before the handshake (404, or the health payload on the
health path).
"""

from __future__ import annotations

import asyncio
import json
import logging
from http import HTTPStatus
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

import websockets
from websockets.asyncio.server import Server, ServerConnection, serve

from term_relay.adapters.ssh import SSHSessionAdapter
from term_relay.protocol import ConnectFrame, DataFrame, ResizeFrame, parse_client_frame
from term_relay.registry import RegistryStats, SessionRegistry
from term_relay.session import RelaySession
from term_relay.types import ProtocolError, RelayError, RelayServerConfig, SessionState

if TYPE_CHECKING:
    from websockets.http11 import Request, Response

    from term_relay.adapters.base import AdapterFactory, DuplexChannel
    from term_relay.logging.types import SessionEventLogger

logger = logging.getLogger(__name__)


class ConnectionGateway:
    """WebSocket front door of the relay.

    Owns the listening server and the :class:`SessionRegistry`. Each accepted
    channel gets exactly one :class:`RelaySession` for its whole lifetime.
    """

    def __init__(
        self,
        config: RelayServerConfig | None = None,
        adapter_factory: AdapterFactory | None = None,
        events_logger: SessionEventLogger | None = None,
        registry: SessionRegistry | None = None,
    ) -> None:
        self._config = config or RelayServerConfig()
        self._adapter_factory = adapter_factory or self._default_adapter_factory
        self._events_logger = events_logger
        self._registry = registry if registry is not None else SessionRegistry()
        self._server: Server | None = None

    @property
    def config(self) -> RelayServerConfig:
        return self._config

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    def _default_adapter_factory(self) -> SSHSessionAdapter:
        return SSHSessionAdapter(
            connect_timeout=self._config.connect_timeout_ms / 1000.0,
            keepalive_interval=self._config.keepalive_interval_ms / 1000.0,
            keepalive_count_max=self._config.keepalive_count_max,
            known_hosts=self._config.known_hosts,
        )

    def accept_upgrade(
        self, connection: ServerConnection, request: Request
    ) -> Response | None:
        """``process_request`` hook: let only relay-path requests upgrade."""
        path = urlsplit(request.path).path

        if path == self._config.path:
            return None

        if self._config.health_path and path == self._config.health_path:
            response = connection.respond(HTTPStatus.OK, json.dumps({"status": "ok"}) + "\n")
            del response.headers["Content-Type"]
            response.headers["Content-Type"] = "application/json"
            return response

        logger.info("Rejecting upgrade request for %s", path)
        return connection.respond(HTTPStatus.NOT_FOUND, "Not Found\n")

    def create_session(self, channel: DuplexChannel) -> RelaySession:
        return RelaySession(
            channel,
            self._adapter_factory,
            cleanup_timeout=self._config.cleanup_timeout_ms / 1000.0,
            events_logger=self._events_logger,
        )

    async def handle_channel(self, channel: ServerConnection) -> None:
        """Serve one duplex channel from accept to teardown."""
        session = self.create_session(channel)
        await self._registry.add(session)
        logger.info(
            "Channel accepted from %s as session %s",
            getattr(channel, "remote_address", None),
            session.session_id,
        )

        try:
            async for message in channel:
                await self.dispatch(session, message)
        except websockets.ConnectionClosedError as exc:
            logger.info("Channel for session %s dropped: %s", session.session_id, exc)
        except Exception:
            logger.exception("Unhandled error in session %s", session.session_id)
            await session.fail(ProtocolError("Internal relay error", "dispatch"))
        finally:
            await self.on_channel_closed(session)

    async def dispatch(self, session: RelaySession, raw_message: str | bytes) -> None:
        """Parse one client message and route it to ``session``.

        Parse failures are reported with an ``error`` frame. They end the
        session only while it is still waiting for its ``connect`` frame.
        """
        if session.closed:
            return

        try:
            frame = parse_client_frame(
                raw_message,
                default_rows=self._config.default_rows,
                default_cols=self._config.default_cols,
                term_type=self._config.term_type,
            )
        except ProtocolError as exc:
            logger.warning("Session %s: rejected frame: %s", session.session_id, exc)
            if session.state == SessionState.AWAITING_CONNECT:
                await session.fail(exc)
            else:
                await session.send_error(exc)
            return

        if isinstance(frame, ConnectFrame):
            await self._dispatch_connect(session, frame)
        elif isinstance(frame, DataFrame):
            await session.handle_data(frame)
        elif isinstance(frame, ResizeFrame):
            await session.handle_resize(frame)

    async def _dispatch_connect(self, session: RelaySession, frame: ConnectFrame) -> None:
        try:
            await session.connect(frame)
        except RelayError as exc:
            await session.send_error(exc)
            return
        logger.info(
            "Session %s: connecting to %s with %s auth",
            session.session_id,
            frame.target.address,
            frame.credentials.method,
        )

    async def on_channel_closed(self, session: RelaySession) -> None:
        """Close ``session`` and drop it from the registry."""
        try:
            await session.close()
        finally:
            await self._registry.remove(session.session_id)
        logger.info(
            "Session %s removed (%d bytes in, %d bytes out)",
            session.session_id,
            session.bytes_in,
            session.bytes_out,
        )

    def get_stats(self) -> RegistryStats:
        return self._registry.get_stats()

    async def start(self) -> Server:
        """Start listening on the configured host and port."""
        self._server = await serve(
            self.handle_channel,
            self._config.host,
            self._config.port,
            process_request=self.accept_upgrade,
        )
        logger.info(
            "Relay listening on ws://%s:%s%s",
            self._config.host,
            self._config.port,
            self._config.path,
        )
        return self._server

    async def stop(self) -> None:
        """Close every session, then the listener."""
        await self._registry.close_all()
        if self._server is not None:
            server = self._server
            self._server = None
            server.close()
            try:
                await asyncio.wait_for(
                    server.wait_closed(),
                    timeout=self._config.cleanup_timeout_ms / 1000.0,
                )
            except TimeoutError:
                logger.warning("Listener did not shut down in time")
        logger.info("Relay stopped")

    async def serve_forever(self) -> None:
        """Run until cancelled, then shut down."""
        await self.start()
        try:
            await asyncio.Future()
        finally:
            await self.stop()
