from __future__ import annotations

from typing import Sequence, Tuple

from handshare.core.constants import FINGER_GROUPS
from handshare.core.surface import Surface
from handshare.core.wire import PosePayload, Skeleton


class Compositor:
    def __init__(
        self,
        local_identity: str,
        fade_alpha: float = 0.6,
        stroke_width: int = 16,
        stroke_alpha: float = 0xDA / 255.0,
    ):
        self.local_identity = local_identity
        self.fade_alpha = fade_alpha
        self.stroke_width = stroke_width
        self.stroke_alpha = stroke_alpha

    def draw_skeleton(self, surface: Surface, skeleton: Skeleton, color: str) -> int:
        drawn = 0
        for indices in FINGER_GROUPS.values():
            points = [skeleton[idx] for idx in indices]
            surface.polyline(points, color, self.stroke_width, self.stroke_alpha)
            drawn += 1
        return drawn

    def render(
        self,
        surface: Surface,
        local_payload: PosePayload | None,
        peer_snapshot: Sequence[Tuple[str, PosePayload]],
    ) -> int:
        """Composite one frame and return the number of polylines drawn.

        The surface is faded rather than cleared so strokes from earlier
        frames trail behind. Only the first skeleton of each payload is
        drawn; peers are drawn in snapshot order, after the local hand.
        """
        surface.fade(self.fade_alpha)
        drawn = 0
        if local_payload is not None and not local_payload.is_empty:
            drawn += self.draw_skeleton(surface, local_payload.first(), self.local_identity)
        for identity, payload in peer_snapshot:
            if payload.is_empty:
                continue
            drawn += self.draw_skeleton(surface, payload.first(), identity)
        return drawn
