from __future__ import annotations

import asyncio
from typing import Callable, Protocol, Sequence

import cv2
import numpy as np
import requests

from .config import API_BASE_URL, PHOTO_BASE_URL, REQUEST_TIMEOUT_SECONDS
from .exceptions import AttendanceError
from .face_engine import FaceDetection
from .logger import setup_logger
from .models import Gallery, LabeledDescriptor, Operator


class FaceDescriber(Protocol):
    def detect_single_face(self, image_bgr: np.ndarray) -> FaceDetection | None: ...


class PhotoLoader:
    """Downloads an operator's reference photo and decodes it to BGR."""

    def __init__(
        self,
        base_url: str = PHOTO_BASE_URL or API_BASE_URL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def url_for(self, operator: Operator) -> str:
        path = operator.image_path
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.base_url}{path}"

    def __call__(self, operator: Operator) -> np.ndarray:
        resp = self.session.get(self.url_for(operator), timeout=self.timeout)
        resp.raise_for_status()
        image = cv2.imdecode(np.frombuffer(resp.content, dtype=np.uint8), cv2.IMREAD_COLOR)
        if image is None:
            raise ValueError(f"Photo at {operator.image_path!r} is not a decodable image.")
        return image


class GalleryBuilder:
    """Builds the labeled reference gallery for a roster of operators.

    Photos are fetched and described concurrently; an operator whose photo
    cannot be fetched, decoded or yields no face is left out. The surviving
    entries keep roster order.
    """

    def __init__(
        self,
        model: FaceDescriber,
        fetch_photo: Callable[[Operator], np.ndarray] | None = None,
    ):
        self.model = model
        self.fetch_photo = fetch_photo or PhotoLoader()
        self.logger = setup_logger(self.__class__.__name__)

    async def build(self, operators: Sequence[Operator], station: str | None = None) -> Gallery:
        selected = [op for op in operators if station is None or op.station == station]
        results = await asyncio.gather(*(self._describe(op) for op in selected))

        entries = tuple(entry for entry in results if entry is not None)
        by_id = {op.id: op for op in selected}
        gallery = Gallery(entries=entries, operators={entry.label: by_id[entry.label] for entry in entries})

        if gallery.is_empty:
            self.logger.warning(
                "No usable reference faces among %d operator(s)%s",
                len(selected),
                f" at {station}" if station else "",
            )
        else:
            self.logger.info("Gallery built with %d of %d operator(s)", len(gallery), len(selected))
        return gallery

    async def _describe(self, operator: Operator) -> LabeledDescriptor | None:
        try:
            image = await asyncio.to_thread(self.fetch_photo, operator)
            detection = await asyncio.to_thread(self.model.detect_single_face, image)
        except (requests.RequestException, AttendanceError, cv2.error, ValueError) as exc:
            self.logger.warning("Skipping operator %s (%s): %s", operator.name, operator.id, exc)
            return None

        if detection is None:
            self.logger.warning("No face detected in photo for operator %s (%s)", operator.name, operator.id)
            return None
        return LabeledDescriptor(label=operator.id, descriptor=np.asarray(detection.descriptor, dtype=np.float32))
