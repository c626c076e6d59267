from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Protocol, Sequence

import numpy as np

from handshare.core.constants import LANDMARK_COUNT
from handshare.core.errors import EstimationError
from handshare.core.wire import PosePayload, to_skeleton
from handshare.models.config import ModelConfig

logger = logging.getLogger(__name__)


class HandEstimator(Protocol):
    def estimate(self, frame: np.ndarray) -> Sequence[Dict[str, Any]]:
        ...


class YoloHandEstimator:
    """Hand keypoint estimator backed by an Ultralytics pose model.

    The model must be trained on a 21-point hand layout (wrist first, then
    four joints per finger). Hands are returned most confident first.
    """

    def __init__(self, cfg: ModelConfig):
        from ultralytics import YOLO

        self.model = YOLO(cfg.path)
        self.conf = cfg.conf
        self.iou = cfg.iou
        self.device = cfg.device
        self.max_hands = cfg.max_hands

    def estimate(self, frame: np.ndarray) -> List[Dict[str, Any]]:
        results = self.model(
            frame,
            conf=self.conf,
            iou=self.iou,
            device=self.device,
            verbose=False,
        )
        if not results:
            return []

        result = results[0]
        kpts = result.keypoints
        if kpts is None or kpts.xy is None:
            return []

        xy = kpts.xy.cpu().numpy()
        if xy.size == 0:
            return []

        if kpts.conf is None:
            conf = np.ones((xy.shape[0], xy.shape[1]), dtype=np.float32)
        else:
            conf = kpts.conf.cpu().numpy()

        order = np.argsort(-conf.mean(axis=1))[: self.max_hands]
        predictions: List[Dict[str, Any]] = []
        for hand_idx in order:
            hand_xy = xy[int(hand_idx)]
            if hand_xy.shape[0] != LANDMARK_COUNT:
                continue
            landmarks = [[float(x), float(y), 0.0] for x, y in hand_xy]
            predictions.append({"landmarks": landmarks})
        return predictions


class PoseSource:
    def __init__(self, estimator: HandEstimator, identity: str):
        self.estimator = estimator
        self.identity = identity

    def _to_payload(self, predictions: Sequence[Dict[str, Any]]) -> PosePayload:
        skeletons = []
        for pred in predictions:
            landmarks = pred.get("landmarks") if isinstance(pred, dict) else None
            if landmarks is None or len(landmarks) != LANDMARK_COUNT:
                logger.debug("[Pose] skipping detection without %d landmarks", LANDMARK_COUNT)
                continue
            skeletons.append(to_skeleton(landmarks))
        return PosePayload(identity=self.identity, skeletons=tuple(skeletons))

    async def sample(self, frame: np.ndarray) -> PosePayload:
        try:
            predictions = await asyncio.to_thread(self.estimator.estimate, frame)
        except Exception as exc:
            raise EstimationError(f"estimator failed: {exc}") from exc
        return self._to_payload(predictions or [])
