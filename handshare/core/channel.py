from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from handshare.core.errors import MalformedMessageError, TransportError
from handshare.core.wire import (
    PosePayload,
    encode_message,
    is_control,
    load_frame,
    payload_from_message,
    validate_message,
)

logger = logging.getLogger(__name__)

PayloadHandler = Callable[[PosePayload], None]


@dataclass
class ChannelStats:
    published: int = 0
    dropped: int = 0
    received: int = 0
    echoes: int = 0
    malformed: int = 0

    def as_dict(self) -> dict:
        return {
            "published": self.published,
            "dropped": self.dropped,
            "received": self.received,
            "echoes": self.echoes,
            "malformed": self.malformed,
        }


class BroadcastChannel(ABC):
    """Publish/subscribe over a shared, unordered, best-effort topic.

    Inbound messages are decoded and validated here. Anything malformed is
    dropped, and messages carrying exactly the local identity are discarded
    because the relay echoes every publish back to its sender.
    """

    def __init__(self, local_identity: str):
        self.local_identity = local_identity
        self.stats = ChannelStats()
        self._handlers: List[PayloadHandler] = []
        self.last_control: Optional[dict] = None

    @property
    @abstractmethod
    def connected(self) -> bool:
        ...

    def subscribe(self, handler: PayloadHandler) -> None:
        self._handlers.append(handler)

    @abstractmethod
    def publish(self, payload: PosePayload) -> None:
        ...

    def _handle_control(self, data: dict) -> None:
        self.last_control = data
        if data.get("type") == "warn":
            logger.warning("[Channel] relay rejected a message: %s", data.get("reason"))
        else:
            logger.debug("[Channel] relay %s: %s", data.get("type"), data)

    def deliver(self, raw: str | bytes) -> Optional[PosePayload]:
        try:
            data = load_frame(raw)
            if is_control(data):
                self._handle_control(data)
                return None
            payload = payload_from_message(validate_message(data))
        except MalformedMessageError as exc:
            self.stats.malformed += 1
            logger.warning("[Channel] dropping malformed message: %s", exc)
            return None
        if payload.identity == self.local_identity:
            self.stats.echoes += 1
            return None
        self.stats.received += 1
        for handler in list(self._handlers):
            try:
                handler(payload)
            except Exception:  # noqa: BLE001
                logger.exception("[Channel] subscriber failed for %s", payload.identity)
        return payload

    async def close(self) -> None:
        return None


class LoopbackBus:
    """In-memory relay: every publish reaches every attached channel, sender included."""

    def __init__(self):
        self._channels: List["LoopbackChannel"] = []
        self.delivered = 0

    def attach(self, channel: "LoopbackChannel") -> None:
        self._channels.append(channel)

    def detach(self, channel: "LoopbackChannel") -> None:
        if channel in self._channels:
            self._channels.remove(channel)

    def broadcast(self, raw: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        for channel in list(self._channels):
            if loop is None:
                channel.deliver(raw)
            else:
                # Arrival is asynchronous with respect to the publisher.
                loop.call_soon(channel.deliver, raw)
            self.delivered += 1


class LoopbackChannel(BroadcastChannel):
    def __init__(self, local_identity: str, bus: LoopbackBus):
        super().__init__(local_identity)
        self.bus = bus
        self._open = True
        bus.attach(self)

    @property
    def connected(self) -> bool:
        return self._open

    def publish(self, payload: PosePayload) -> None:
        if not self._open:
            self.stats.dropped += 1
            return
        self.stats.published += 1
        self.bus.broadcast(encode_message(payload))

    async def close(self) -> None:
        self._open = False
        self.bus.detach(self)


def with_token(url: str, token: str) -> str:
    if not token:
        return url
    parts = urlsplit(url)
    query = parts.query + ("&" if parts.query else "") + urlencode({"token": token})
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


class WebSocketChannel(BroadcastChannel):
    """Broadcast channel backed by the relay's WebSocket endpoint.

    ``publish`` never waits on the network: encoded messages go into a small
    queue drained by a sender task, and when the queue is full the oldest
    pending message is discarded. Send and receive failures are logged and
    leave the channel disconnected; there is no reconnect.
    """

    def __init__(
        self,
        url: str,
        local_identity: str,
        token: str = "",
        max_pending: int = 4,
        open_timeout_s: float = 5.0,
        max_message_size: int = 1_000_000,
    ):
        super().__init__(local_identity)
        self.url = with_token(url, token)
        self.max_pending = max(1, int(max_pending))
        self.open_timeout_s = open_timeout_s
        self.max_message_size = max_message_size
        self._ws = None
        self._queue: Optional[asyncio.Queue] = None
        self._sender: Optional[asyncio.Task] = None
        self._receiver: Optional[asyncio.Task] = None
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def _open_socket(self):
        return await asyncio.wait_for(
            websockets.connect(self.url, max_size=self.max_message_size),
            timeout=self.open_timeout_s,
        )

    async def connect(self) -> "WebSocketChannel":
        try:
            self._ws = await self._open_socket()
        except (OSError, WebSocketException, asyncio.TimeoutError) as exc:
            raise TransportError(f"could not connect to {self.url}: {exc}") from exc
        self._queue = asyncio.Queue(maxsize=self.max_pending)
        self._connected = True
        self._sender = asyncio.create_task(self._send_loop())
        self._receiver = asyncio.create_task(self._recv_loop())
        logger.info("[Channel] connected to %s as %s", self.url, self.local_identity)
        return self

    def publish(self, payload: PosePayload) -> None:
        if not self._connected or self._queue is None:
            self.stats.dropped += 1
            return
        message = encode_message(payload)
        if self._queue.full():
            self._queue.get_nowait()
            self.stats.dropped += 1
        self._queue.put_nowait(message)

    async def _send_loop(self) -> None:
        try:
            while True:
                message = await self._queue.get()
                await self._ws.send(message)
                self.stats.published += 1
        except ConnectionClosed as exc:
            logger.warning("[Channel] send failed, connection closed: %s", exc)
        except Exception:  # noqa: BLE001
            logger.exception("[Channel] send failed")
        finally:
            self._connected = False

    async def _recv_loop(self) -> None:
        try:
            async for raw in self._ws:
                self.deliver(raw)
        except ConnectionClosed as exc:
            logger.warning("[Channel] receive stopped, connection closed: %s", exc)
        except Exception:  # noqa: BLE001
            logger.exception("[Channel] receive failed")
        finally:
            self._connected = False

    async def close(self) -> None:
        self._connected = False
        tasks = [task for task in (self._sender, self._receiver) if task is not None]
        self._sender = self._receiver = None
        for task in tasks:
            task.cancel()
        try:
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.warning("[Channel] task ended with %r during close", result)
        finally:
            if self._ws is not None:
                ws, self._ws = self._ws, None
                await ws.close()
