from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional, Set

from handshare.core.errors import MalformedMessageError
from handshare.core.wire import parse_message

logger = logging.getLogger(__name__)


class RelayHub:
    """Fans every valid pose message out to every connection, sender included.

    There is one topic and no per-room state. The hub keeps only counters and
    the last time each user was heard from, forgetting users silent for longer
    than ``users_window_s``; payloads are never stored.
    """

    def __init__(
        self,
        max_message_size: int = 64_000,
        users_window_s: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        self.max_message_size = max_message_size
        self.users_window_s = users_window_s
        self._clock = clock
        self._clients: Set[Any] = set()
        self._lock = asyncio.Lock()
        self._users: Dict[str, float] = {}
        self.relayed = 0
        self.dropped = 0

    async def add(self, websocket: Any) -> None:
        async with self._lock:
            self._clients.add(websocket)
        logger.info("[Relay] client connected (%d total)", len(self._clients))

    async def remove(self, websocket: Any) -> None:
        async with self._lock:
            self._clients.discard(websocket)
        logger.info("[Relay] client disconnected (%d total)", len(self._clients))

    def validate(self, raw: str) -> Optional[str]:
        """Return a drop reason, or None when the message may be relayed."""
        if len(raw.encode("utf-8")) > self.max_message_size:
            return "message_too_large"
        try:
            message = parse_message(raw)
        except MalformedMessageError as exc:
            logger.warning("[Relay] dropping malformed message: %s", exc)
            return "malformed_message"
        now = self._clock()
        self.prune_users(now)
        self._users[message.user] = now
        return None

    def prune_users(self, now: Optional[float] = None) -> int:
        now = self._clock() if now is None else now
        stale = [user for user, seen in self._users.items() if now - seen > self.users_window_s]
        for user in stale:
            self._users.pop(user, None)
        return len(stale)

    async def relay(self, raw: str) -> Optional[str]:
        reason = self.validate(raw)
        if reason is not None:
            self.dropped += 1
            return reason
        await self.broadcast_text(raw)
        self.relayed += 1
        return None

    async def broadcast_text(self, payload: str) -> None:
        async with self._lock:
            clients = list(self._clients)
        if not clients:
            return
        results = await asyncio.gather(
            *(ws.send_text(payload) for ws in clients),
            return_exceptions=True,
        )
        failed = [ws for ws, result in zip(clients, results) if isinstance(result, Exception)]
        if failed:
            async with self._lock:
                for ws in failed:
                    self._clients.discard(ws)
            logger.warning("[Relay] dropped %d client(s) after failed send", len(failed))

    def status(self) -> dict:
        self.prune_users()
        return {
            "connections": len(self._clients),
            "relayed": self.relayed,
            "dropped": self.dropped,
            "users": dict(self._users),
        }
