from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from handshare.core.channel import BroadcastChannel
from handshare.core.compositor import Compositor
from handshare.core.identity import IdentityAssigner
from handshare.core.peers import PeerStateTable
from handshare.core.pose import HandEstimator, PoseSource
from handshare.core.scheduler import FrameScheduler
from handshare.core.surface import Surface
from handshare.models.config import ClientConfig


@dataclass
class SessionContext:
    identity: str
    table: PeerStateTable
    channel: BroadcastChannel
    pose_source: PoseSource
    compositor: Compositor
    surface: Surface
    scheduler: FrameScheduler

    def status(self) -> dict:
        out = self.scheduler.status()
        out["identity"] = self.identity
        out["connected"] = self.channel.connected
        out["channel"] = self.channel.stats.as_dict()
        out["peers"] = self.table.health_snapshot()
        return out


def build_session(
    cfg: ClientConfig,
    estimator: HandEstimator,
    channel_factory: Callable[[str], BroadcastChannel],
    width: Optional[int] = None,
    height: Optional[int] = None,
    identity: Optional[str] = None,
    on_frame: Optional[Callable[[Surface], None]] = None,
) -> SessionContext:
    """Wire one client session.

    The identity is drawn here, once, and handed to everything that needs it.
    The channel's subscription is the only writer of the peer table.
    """
    identity = identity or IdentityAssigner().assign()
    table = PeerStateTable(ttl_s=cfg.peer_ttl_s)
    channel = channel_factory(identity)
    channel.subscribe(lambda payload: table.update(payload.identity, payload))
    pose_source = PoseSource(estimator, identity)
    compositor = Compositor(
        identity,
        fade_alpha=cfg.fade_alpha,
        stroke_width=cfg.stroke_width,
        stroke_alpha=cfg.stroke_alpha,
    )
    surface = Surface(
        width or cfg.video_width,
        height or cfg.video_height,
        mirrored=cfg.mirrored,
    )
    scheduler = FrameScheduler(
        pose_source,
        channel,
        table,
        compositor,
        surface,
        target_fps=cfg.target_fps,
        on_frame=on_frame,
    )
    return SessionContext(
        identity=identity,
        table=table,
        channel=channel,
        pose_source=pose_source,
        compositor=compositor,
        surface=surface,
        scheduler=scheduler,
    )
