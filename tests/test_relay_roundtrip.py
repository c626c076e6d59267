import asyncio
from pathlib import Path
import socket
import tempfile
import unittest

try:
    import uvicorn
except ImportError:  # pragma: no cover
    uvicorn = None

from handshare.core.channel import WebSocketChannel
from handshare.core.errors import TransportError
from handshare.core.peers import PeerStateTable
from helpers import make_payload

TOKEN = "roundtrip-token"
SENDER = "#111111"
RECEIVER = "#222222"


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def _wait_for(predicate, timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.01)


@unittest.skipUnless(uvicorn is not None, "uvicorn not installed")
class RelayRoundTripTests(unittest.IsolatedAsyncioTestCase):
    """Real relay app served by uvicorn, real WebSocket clients."""

    async def asyncSetUp(self):
        from handshare.main import create_app
        from handshare.models.config import AppConfig, ServerConfig
        from handshare.services.config_store import ConfigStore

        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        path = Path(self._tmp.name) / "config.yaml"
        ConfigStore(path).save(AppConfig(server=ServerConfig(token=TOKEN)))

        self.port = _free_port()
        self.url = f"ws://127.0.0.1:{self.port}/ws/messages"
        config = uvicorn.Config(
            create_app(path),
            host="127.0.0.1",
            port=self.port,
            log_level="warning",
            lifespan="off",
        )
        self.server = uvicorn.Server(config)
        self.server_task = asyncio.create_task(self.server.serve())
        await _wait_for(lambda: self.server.started or self.server_task.done())
        self.assertTrue(self.server.started, "relay server did not start")
        self.channels = []

    async def asyncTearDown(self):
        for channel in self.channels:
            await channel.close()
        if not self.server_task.done():
            self.server.should_exit = True
            await self.server_task

    async def _open(self, identity: str) -> WebSocketChannel:
        channel = WebSocketChannel(self.url, identity, token=TOKEN, open_timeout_s=2.0)
        self.channels.append(channel)
        await channel.connect()
        await _wait_for(lambda: channel.last_control is not None)
        self.assertEqual(channel.last_control["type"], "ack")
        return channel

    async def test_publish_reaches_peer_and_echoes_to_sender(self):
        sender = await self._open(SENDER)
        receiver = await self._open(RECEIVER)
        sender_table = PeerStateTable()
        receiver_table = PeerStateTable()
        sender.subscribe(lambda payload: sender_table.update(payload.identity, payload))
        receiver.subscribe(lambda payload: receiver_table.update(payload.identity, payload))

        payload = make_payload(SENDER)
        sender.publish(payload)
        await _wait_for(lambda: SENDER in receiver_table and sender.stats.echoes == 1)

        self.assertEqual(receiver_table.get(SENDER), payload)
        self.assertEqual(len(sender_table), 0)
        self.assertEqual(sender.stats.published, 1)
        self.assertEqual(receiver.stats.received, 1)

    async def test_connect_to_unused_port_raises(self):
        channel = WebSocketChannel(
            f"ws://127.0.0.1:{_free_port()}/ws/messages", SENDER, open_timeout_s=2.0
        )
        with self.assertRaises(TransportError):
            await channel.connect()
        self.assertFalse(channel.connected)

    async def test_wrong_token_raises(self):
        channel = WebSocketChannel(self.url, SENDER, token="wrong", open_timeout_s=2.0)
        with self.assertRaises(TransportError):
            await channel.connect()

    async def test_server_shutdown_disconnects_channel(self):
        channel = await self._open(SENDER)
        self.assertTrue(channel.connected)

        self.server.should_exit = True
        await self.server_task
        await _wait_for(lambda: not channel.connected)

        channel.publish(make_payload(SENDER))
        self.assertEqual(channel.stats.dropped, 1)


if __name__ == "__main__":
    unittest.main()
