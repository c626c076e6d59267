from handshare.core.surface import Surface
from handshare.core.wire import PosePayload


def make_skeleton(offset: float = 0.0):
    return tuple((float(i) + offset, float(i) * 2.0 + offset, 0.0) for i in range(21))


def make_payload(identity: str, hands: int = 1, offset: float = 0.0) -> PosePayload:
    return PosePayload(
        identity=identity,
        skeletons=tuple(make_skeleton(offset + k) for k in range(hands)),
    )


class RecordingSurface(Surface):
    def __init__(self, width: int = 64, height: int = 64, mirrored: bool = True):
        super().__init__(width, height, mirrored=mirrored)
        self.fades = []
        self.polylines = []

    def fade(self, alpha, color=(255, 255, 255)):
        self.fades.append(alpha)
        super().fade(alpha, color)

    def polyline(self, points, color, width, alpha=1.0):
        self.polylines.append(
            {"points": list(points), "color": color, "width": width, "alpha": alpha}
        )
        super().polyline(points, color, width, alpha)


class FakeVideo:
    def __init__(self, width: int = 64, height: int = 64):
        import numpy as np

        self.frame = np.zeros((height, width, 3), dtype=np.uint8)
        self.reads = 0

    def read(self):
        self.reads += 1
        return self.frame


class StaticEstimator:
    def __init__(self, predictions=None):
        self.predictions = predictions if predictions is not None else []
        self.calls = 0

    def estimate(self, frame):
        self.calls += 1
        return self.predictions
