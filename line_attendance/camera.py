from __future__ import annotations

import os
import time
from typing import List, Tuple

import cv2
import numpy as np

from .config import CAMERA_INDEX, CAMERA_WARMUP_READS, FRAME_HEIGHT, FRAME_WIDTH
from .exceptions import CameraAccessError


def capture_backends() -> List[Tuple[str, int | None]]:
    # DirectShow is the most reliable backend for USB webcams on Windows kiosks.
    if os.name == "nt":
        names = ("DirectShow", "Media Foundation", "Auto")
    else:
        names = ("Auto",)
    backend_map = {
        "Auto": getattr(cv2, "CAP_ANY", None),
        "DirectShow": getattr(cv2, "CAP_DSHOW", None),
        "Media Foundation": getattr(cv2, "CAP_MSMF", None),
    }
    return [(name, backend_map.get(name)) for name in names]


class CameraTrack:
    """A live video track. Stopping is idempotent; the device is released once."""

    def __init__(self, capture, backend_name: str = "Auto"):
        self._capture = capture
        self.backend_name = backend_name

    @property
    def active(self) -> bool:
        return self._capture is not None

    def read_frame(self) -> np.ndarray:
        if self._capture is None:
            raise CameraAccessError("Camera track is stopped.")
        ok, frame = self._capture.read()
        if not ok or frame is None:
            raise CameraAccessError("Failed to read frame from webcam.")
        return frame

    def stop(self) -> bool:
        if self._capture is None:
            return False
        self._capture.release()
        self._capture = None
        return True


def open_camera_track(
    camera_index: int = CAMERA_INDEX,
    width: int = FRAME_WIDTH,
    height: int = FRAME_HEIGHT,
) -> CameraTrack:
    attempted: List[str] = []

    for backend_name, backend in capture_backends():
        attempted.append(backend_name)
        cap = cv2.VideoCapture(camera_index) if backend is None else cv2.VideoCapture(camera_index, backend)
        if cap.isOpened():
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
            # Some drivers report opened but never deliver a frame.
            for _ in range(max(1, CAMERA_WARMUP_READS)):
                ok, frame = cap.read()
                if ok and frame is not None:
                    return CameraTrack(cap, backend_name)
                time.sleep(0.03)
        cap.release()

    raise CameraAccessError(
        f"Unable to open webcam index {camera_index}. Tried backends: {', '.join(attempted)}."
    )
