from __future__ import annotations

from typing import Sequence, Tuple

import cv2
import numpy as np

WHITE_BGR = (255, 255, 255)


def hex_to_bgr(color: str) -> Tuple[int, int, int]:
    value = color.lstrip("#")
    if len(value) != 6:
        raise ValueError(f"expected #rrggbb color, got {color!r}")
    r = int(value[0:2], 16)
    g = int(value[2:4], 16)
    b = int(value[4:6], 16)
    return (b, g, r)


class Surface:
    """BGR drawing target with a fixed horizontal mirror.

    The mirror is chosen once when the surface is created, the same way a
    canvas transform is set up before the first frame; callers always pass
    points in video pixel space.
    """

    def __init__(self, width: int, height: int, mirrored: bool = True):
        self.width = int(width)
        self.height = int(height)
        self.mirrored = mirrored
        self.image = np.full((self.height, self.width, 3), 255, dtype=np.uint8)

    def to_device(self, points: Sequence[Sequence[float]]) -> np.ndarray:
        xy = np.array([[p[0], p[1]] for p in points], dtype=np.float64).reshape(-1, 2)
        if self.mirrored:
            xy[:, 0] = self.width - xy[:, 0]
        # Far off-surface points are pulled in so the int32 cast stays in range.
        bound = 4 * max(self.width, self.height)
        np.clip(xy, -bound, bound, out=xy)
        return np.round(xy).astype(np.int32)

    def fade(self, alpha: float, color: Tuple[int, int, int] = WHITE_BGR) -> None:
        overlay = np.empty_like(self.image)
        overlay[:] = color
        self.image[:] = cv2.addWeighted(overlay, alpha, self.image, 1.0 - alpha, 0.0)

    def polyline(
        self,
        points: Sequence[Sequence[float]],
        color: str,
        width: int,
        alpha: float = 1.0,
    ) -> None:
        pts = self.to_device(points)
        if len(pts) < 2:
            return
        bgr = hex_to_bgr(color)
        if alpha >= 1.0:
            cv2.polylines(self.image, [pts], False, bgr, int(width), cv2.LINE_AA)
            return

        # Blend only the stroke's bounding box to keep the per-call cost small.
        pad = int(width)
        x0 = max(int(pts[:, 0].min()) - pad, 0)
        y0 = max(int(pts[:, 1].min()) - pad, 0)
        x1 = min(int(pts[:, 0].max()) + pad + 1, self.width)
        y1 = min(int(pts[:, 1].max()) + pad + 1, self.height)
        if x0 >= x1 or y0 >= y1:
            return
        roi = self.image[y0:y1, x0:x1]
        overlay = roi.copy()
        shifted = pts - np.array([x0, y0], dtype=np.int32)
        cv2.polylines(overlay, [shifted], False, bgr, int(width), cv2.LINE_AA)
        self.image[y0:y1, x0:x1] = cv2.addWeighted(overlay, alpha, roi, 1.0 - alpha, 0.0)
