from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

import numpy as np

from handshare.core.channel import BroadcastChannel
from handshare.core.compositor import Compositor
from handshare.core.errors import AcquisitionError, EstimationError
from handshare.core.peers import PeerStateTable
from handshare.core.pose import PoseSource
from handshare.core.surface import Surface
from handshare.core.wire import PosePayload

logger = logging.getLogger(__name__)


class FrameReader(Protocol):
    def read(self) -> np.ndarray:
        ...


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class CancellationToken:
    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def sleep(self, delay_s: float) -> bool:
        """Wait up to ``delay_s``; return True if cancelled meanwhile."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(0.0, delay_s))
        except asyncio.TimeoutError:
            return False
        return True


@dataclass
class SchedulerStatus:
    state: SchedulerState = SchedulerState.IDLE
    message: str = "idle"
    ticks: int = 0
    published: int = 0
    last_polylines: int = 0
    last_peers: int = 0
    loop_fps: float = 0.0
    loop_ms: float = 0.0


class FrameScheduler:
    """Drives the sample, publish, snapshot, render loop.

    Each tick suspends once, for pose estimation. Peer messages that land
    during that suspension only show up in the next tick's snapshot. The next
    tick is scheduled on the following refresh boundary after the current one
    completes; late ticks are not made up.

    ``stop()`` cancels the token. A tick that is already estimating runs to
    completion, but no further tick is scheduled.
    """

    def __init__(
        self,
        pose_source: PoseSource,
        channel: BroadcastChannel,
        table: PeerStateTable,
        compositor: Compositor,
        surface: Surface,
        target_fps: float = 60.0,
        on_frame: Optional[Callable[[Surface], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.pose_source = pose_source
        self.channel = channel
        self.table = table
        self.compositor = compositor
        self.surface = surface
        self.frame_interval_s = 1.0 / max(float(target_fps), 1.0)
        self.on_frame = on_frame
        self._clock = clock
        self.token = CancellationToken()
        self.state = SchedulerStatus()
        self.acquisition_message: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._origin = 0.0
        self._prev_tick_end = 0.0

    def status(self) -> dict:
        return {
            "state": self.state.state.value,
            "message": self.state.message,
            "ticks": self.state.ticks,
            "published": self.state.published,
            "last_polylines": self.state.last_polylines,
            "last_peers": self.state.last_peers,
            "loop_fps": self.state.loop_fps,
            "loop_ms": self.state.loop_ms,
        }

    def start(self, video: Optional[FrameReader]) -> asyncio.Task:
        if self._task is not None:
            return self._task
        self._task = asyncio.create_task(self.run(video))
        return self._task

    def stop(self) -> dict:
        if self.state.state == SchedulerState.STOPPED:
            return {"ok": True, "message": "already_stopped"}
        self.token.cancel()
        self.state.state = SchedulerState.STOPPED
        self.state.message = "stopped"
        return {"ok": True, "message": "stopped"}

    def next_refresh_delay(self, now: Optional[float] = None) -> float:
        now = self._clock() if now is None else now
        phase = (now - self._origin) % self.frame_interval_s
        return self.frame_interval_s - phase

    def _acquisition_failed(self, message: str) -> None:
        if self.state.message != message:
            logger.warning("[Scheduler] %s; rendering peers only", message)
        self.state.message = message

    async def _sample_local(self, video: Optional[FrameReader]) -> Optional[PosePayload]:
        if video is None:
            self._acquisition_failed(self.acquisition_message or "camera unavailable")
            return None
        try:
            frame = video.read()
        except AcquisitionError as exc:
            self._acquisition_failed(str(exc))
            return None
        payload = await self.pose_source.sample(frame)
        if self.state.state == SchedulerState.RUNNING:
            self.state.message = "running"
        return payload

    async def tick(self, video: Optional[FrameReader]) -> int:
        t0 = self._clock()
        local = await self._sample_local(video)
        if local is not None and not local.is_empty:
            self.channel.publish(local)
            self.state.published += 1
        snapshot = self.table.snapshot_all()
        drawn = self.compositor.render(self.surface, local, snapshot)
        if self.on_frame is not None:
            self.on_frame(self.surface)

        self.state.ticks += 1
        self.state.last_polylines = drawn
        self.state.last_peers = len(snapshot)
        now = self._clock()
        elapsed_ms = (now - t0) * 1000.0
        if self.state.loop_ms <= 0.0:
            self.state.loop_ms = elapsed_ms
        else:
            self.state.loop_ms = (0.8 * self.state.loop_ms) + (0.2 * elapsed_ms)
        if self._prev_tick_end > 0.0:
            inst_fps = 1.0 / max(1e-6, now - self._prev_tick_end)
            if self.state.loop_fps <= 0.0:
                self.state.loop_fps = inst_fps
            else:
                self.state.loop_fps = (0.8 * self.state.loop_fps) + (0.2 * inst_fps)
        self._prev_tick_end = now
        return drawn

    async def run(self, video: Optional[FrameReader]) -> None:
        if self.state.state != SchedulerState.IDLE:
            raise RuntimeError(f"scheduler cannot start from state {self.state.state.value}")
        self.state.state = SchedulerState.RUNNING
        self.state.message = "running"
        self._origin = self._clock()
        logger.info("[Scheduler] running at %.1f fps target", 1.0 / self.frame_interval_s)
        try:
            while not self.token.cancelled:
                await self.tick(video)
                if self.token.cancelled:
                    break
                if await self.token.sleep(self.next_refresh_delay()):
                    break
        except EstimationError as exc:
            self.state.message = f"error: {exc}"
            logger.error("[Scheduler] halted: %s", exc)
            raise
        finally:
            self.state.state = SchedulerState.STOPPED
