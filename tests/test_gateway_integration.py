"""End-to-end tests over real WebSocket connections on localhost.

The SSH side is a loopback adapter, so no SSH server is needed.
"""

from __future__ import annotations

import asyncio
import json

import pytest
import websockets
from websockets.asyncio.client import connect

from term_relay.adapters.loopback import LoopbackSessionAdapter
from term_relay.gateway import ConnectionGateway
from term_relay.types import RelayServerConfig

from .fakes import CONNECT, wait_until

pytestmark = pytest.mark.integration


@pytest.fixture
async def running_gateway():
    gateway = ConnectionGateway(
        RelayServerConfig(host="127.0.0.1", port=0, cleanup_timeout_ms=500),
        adapter_factory=lambda: LoopbackSessionAdapter(greeting=b"$ "),
    )
    server = await gateway.start()
    port = next(iter(server.sockets)).getsockname()[1]
    yield gateway, port
    await gateway.stop()


async def recv_json(ws) -> dict:
    return json.loads(await asyncio.wait_for(ws.recv(), timeout=2.0))


class TestGatewayOverWebSocket:
    async def test_connect_and_echo(self, running_gateway):
        gateway, port = running_gateway
        async with connect(f"ws://127.0.0.1:{port}/ws/ssh") as ws:
            await ws.send(json.dumps(CONNECT))
            assert await recv_json(ws) == {"type": "connected"}
            assert await recv_json(ws) == {"type": "data", "data": "$ "}

            await ws.send(json.dumps({"type": "data", "data": "ls\r"}))
            assert await recv_json(ws) == {"type": "data", "data": "ls\r"}
            assert len(gateway.registry) == 1

        await wait_until(lambda: len(gateway.registry) == 0, timeout=2.0)

    async def test_invalid_connect_gets_error_then_close(self, running_gateway):
        gateway, port = running_gateway
        async with connect(f"ws://127.0.0.1:{port}/ws/ssh") as ws:
            await ws.send(json.dumps({"type": "connect", "host": "h", "username": "u"}))
            error = await recv_json(ws)
            assert error["type"] == "error"
            with pytest.raises(websockets.ConnectionClosed):
                await asyncio.wait_for(ws.recv(), timeout=2.0)

        await wait_until(lambda: len(gateway.registry) == 0, timeout=2.0)

    async def test_wrong_path_rejected(self, running_gateway):
        _, port = running_gateway
        with pytest.raises(websockets.InvalidStatus) as exc_info:
            async with connect(f"ws://127.0.0.1:{port}/not-the-relay"):
                pass
        assert exc_info.value.response.status_code == 404

    async def test_health_check(self, running_gateway):
        _, port = running_gateway
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        writer.write(b"GET /api/check HTTP/1.1\r\nHost: localhost\r\n\r\n")
        await writer.drain()
        response = await asyncio.wait_for(reader.read(), timeout=2.0)
        writer.close()

        assert response.startswith(b"HTTP/1.1 200")
        assert b'{"status": "ok"}' in response

    async def test_stop_sends_close_to_clients(self, running_gateway):
        gateway, port = running_gateway
        async with connect(f"ws://127.0.0.1:{port}/ws/ssh") as ws:
            await ws.send(json.dumps(CONNECT))
            assert await recv_json(ws) == {"type": "connected"}
            assert await recv_json(ws) == {"type": "data", "data": "$ "}

            await gateway.stop()
            assert await recv_json(ws) == {"type": "close"}
