from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from handshare.core.wire import PosePayload


@dataclass
class PeerEntry:
    payload: PosePayload
    received_at: float
    updates: int


class PeerStateTable:
    """Latest pose payload per peer identity.

    Writes come only from the channel subscription and reads only from the
    render tick, both on the event loop thread, so no lock is taken. Updates
    overwrite unconditionally: the message that arrived last wins regardless
    of when it was sent. Iteration order is first appearance; overwriting an
    identity keeps its slot.

    With ``ttl_s > 0`` entries that have not been refreshed within the TTL
    are hidden from snapshots and dropped on the next update. ``ttl_s == 0``
    keeps every entry for the life of the process.
    """

    def __init__(self, ttl_s: float = 0.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_s = max(0.0, float(ttl_s))
        self._clock = clock
        self._entries: Dict[str, PeerEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identity: object) -> bool:
        return identity in self._entries

    def _is_stale(self, entry: PeerEntry, now: float) -> bool:
        return self.ttl_s > 0.0 and (now - entry.received_at) > self.ttl_s

    def update(self, identity: str, payload: PosePayload) -> None:
        now = self._clock()
        self.prune(now)
        entry = self._entries.get(identity)
        if entry is None:
            self._entries[identity] = PeerEntry(payload=payload, received_at=now, updates=1)
            return
        entry.payload = payload
        entry.received_at = now
        entry.updates += 1

    def get(self, identity: str) -> Optional[PosePayload]:
        entry = self._entries.get(identity)
        if entry is None or self._is_stale(entry, self._clock()):
            return None
        return entry.payload

    def remove(self, identity: str) -> bool:
        return self._entries.pop(identity, None) is not None

    def prune(self, now: Optional[float] = None) -> int:
        if self.ttl_s <= 0.0:
            return 0
        now = self._clock() if now is None else now
        stale_ids = [
            identity
            for identity, entry in self._entries.items()
            if self._is_stale(entry, now)
        ]
        for identity in stale_ids:
            self._entries.pop(identity, None)
        return len(stale_ids)

    def snapshot_all(self) -> Tuple[Tuple[str, PosePayload], ...]:
        now = self._clock()
        return tuple(
            (identity, entry.payload)
            for identity, entry in self._entries.items()
            if not self._is_stale(entry, now)
        )

    def health_snapshot(self) -> Dict[str, dict]:
        now = self._clock()
        return {
            identity: {
                "age_s": max(0.0, now - entry.received_at),
                "updates": entry.updates,
                "hands": len(entry.payload.skeletons),
                "stale": self._is_stale(entry, now),
            }
            for identity, entry in self._entries.items()
        }
