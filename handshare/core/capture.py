from __future__ import annotations

import logging
from typing import Optional

import cv2
import numpy as np

from handshare.core.errors import AcquisitionError

logger = logging.getLogger(__name__)


class VideoSource:
    def __init__(self, camera_index: int = 0, width: int = 640, height: int = 500):
        self.camera_index = camera_index
        self.requested_width = width
        self.requested_height = height
        self._cap: Optional[cv2.VideoCapture] = None
        self.width = width
        self.height = height

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def open(self) -> "VideoSource":
        cap = cv2.VideoCapture(self.camera_index)
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.requested_width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.requested_height)
        if not cap.isOpened():
            cap.release()
            raise AcquisitionError(f"camera {self.camera_index} not available")
        self._cap = cap
        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        if width > 0 and height > 0:
            self.width = width
            self.height = height
        logger.info("[Capture] camera %s opened at %dx%d", self.camera_index, self.width, self.height)
        return self

    def read(self) -> np.ndarray:
        if self._cap is None:
            raise AcquisitionError("camera not opened")
        ok, frame = self._cap.read()
        if not ok or frame is None:
            raise AcquisitionError(f"camera {self.camera_index} returned no frame")
        return frame

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
