from __future__ import annotations

import asyncio
from dataclasses import dataclass

import cv2
import numpy as np

from .config import DEVICE, FACE_MIN_CONFIDENCE, MIN_FACE_SIZE
from .exceptions import FaceEngineError, ModelLoadError
from .logger import setup_logger

try:
    import mediapipe as mp
except Exception:  # pragma: no cover - runtime dependency guard
    mp = None

EMBED_SIZE = 224


@dataclass
class FaceDetection:
    descriptor: np.ndarray
    box: np.ndarray
    score: float


class ModelService:
    """Face detector + descriptor network shared by the whole kiosk process.

    ``load()`` is idempotent and must finish before any detection call. A
    failed load is remembered and re-raised; it is never retried until
    ``teardown()`` resets the service.
    """

    def __init__(
        self,
        device: str = DEVICE,
        min_confidence: float = FACE_MIN_CONFIDENCE,
        min_face_size: int = MIN_FACE_SIZE,
    ):
        self.device_name = device
        self.min_confidence = min_confidence
        self.min_face_size = min_face_size
        self.logger = setup_logger(self.__class__.__name__)

        self._lock = asyncio.Lock()
        self._failure: ModelLoadError | None = None
        self._detector = None
        self._embedder = None
        self._torch = None
        self._device = None
        self._mean = None
        self._std = None
        self._clahe = None

    @property
    def ready(self) -> bool:
        return self._embedder is not None

    async def load(self) -> None:
        if self.ready:
            return
        if self._failure is not None:
            raise self._failure

        async with self._lock:
            if self.ready:
                return
            if self._failure is not None:
                raise self._failure
            try:
                await asyncio.to_thread(self._load_models)
            except ModelLoadError as exc:
                self._failure = exc
                self.logger.error("Face model load failed: %s", exc)
                raise
        self.logger.info("Face models ready on %s", self._device)

    def teardown(self) -> None:
        if self._detector is not None:
            self._detector.close()
        self._detector = None
        self._embedder = None
        self._failure = None
        self._mean = None
        self._std = None

    def _load_models(self) -> None:
        if mp is None:
            raise ModelLoadError("mediapipe is required for face detection.")

        try:
            import torch
            import torchvision.models as models
            from torchvision.models import ResNet18_Weights

            if self.device_name == "auto":
                device = torch.device("cuda" if torch.cuda.is_available() else "cpu")
            else:
                device = torch.device(self.device_name)

            detector = mp.solutions.face_detection.FaceDetection(
                model_selection=0,
                min_detection_confidence=self.min_confidence,
            )
            backbone = models.resnet18(weights=ResNet18_Weights.DEFAULT)
            backbone.fc = torch.nn.Identity()
            embedder = backbone.eval().to(device)

            mean = torch.tensor([0.485, 0.456, 0.406], dtype=torch.float32).view(1, 3, 1, 1).to(device)
            std = torch.tensor([0.229, 0.224, 0.225], dtype=torch.float32).view(1, 3, 1, 1).to(device)
        except Exception as exc:
            raise ModelLoadError(f"Failed to initialize face models: {exc}") from exc

        self._torch = torch
        self._device = device
        self._detector = detector
        self._mean = mean
        self._std = std
        self._clahe = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8))
        self._embedder = embedder

    def detect_single_face(self, image_bgr: np.ndarray) -> FaceDetection | None:
        """Describe the most confident face in the image, or return None."""
        if not self.ready:
            raise FaceEngineError("Face models are not loaded.")
        if image_bgr is None or image_bgr.size == 0:
            raise FaceEngineError("Empty image passed to face detection.")

        try:
            rgb = cv2.cvtColor(image_bgr, cv2.COLOR_BGR2RGB)
            result = self._detector.process(rgb)
        except Exception as exc:
            raise FaceEngineError(f"Face detection failed: {exc}") from exc

        if not result.detections:
            return None

        best = max(result.detections, key=lambda det: float(det.score[0]) if det.score else 0.0)
        score = float(best.score[0]) if best.score else 0.0
        if score < self.min_confidence:
            return None

        h, w = rgb.shape[:2]
        rel = best.location_data.relative_bounding_box
        x1 = max(0, int(rel.xmin * w))
        y1 = max(0, int(rel.ymin * h))
        x2 = min(w, x1 + int(rel.width * w))
        y2 = min(h, y1 + int(rel.height * h))
        if (x2 - x1) < self.min_face_size or (y2 - y1) < self.min_face_size:
            return None

        crop = self._square_crop(rgb, x1, y1, x2, y2)
        if crop.size == 0:
            return None

        return FaceDetection(
            descriptor=self._describe(crop),
            box=np.array([x1, y1, x2, y2], dtype=np.float32),
            score=score,
        )

    def _describe(self, crop: np.ndarray) -> np.ndarray:
        torch = self._torch
        try:
            tensor = torch.from_numpy(self._equalize(crop)).permute(2, 0, 1).float().unsqueeze(0) / 255.0
            tensor = (tensor.to(self._device) - self._mean) / self._std
            with torch.inference_mode():
                raw = self._embedder(tensor)
                normed = torch.nn.functional.normalize(raw, p=2, dim=1)
            return normed[0].detach().cpu().numpy().astype(np.float32)
        except Exception as exc:
            raise FaceEngineError(f"Descriptor extraction failed: {exc}") from exc

    @staticmethod
    def _square_crop(rgb: np.ndarray, x1: int, y1: int, x2: int, y2: int) -> np.ndarray:
        h, w = rgb.shape[:2]
        side = int(max(x2 - x1, y2 - y1) * 1.1)
        cx = (x1 + x2) // 2
        cy = (y1 + y2) // 2
        sx1 = max(0, cx - side // 2)
        sy1 = max(0, cy - side // 2)
        sx2 = min(w, sx1 + side)
        sy2 = min(h, sy1 + side)
        return rgb[sy1:sy2, sx1:sx2]

    def _equalize(self, crop: np.ndarray) -> np.ndarray:
        interpolation = cv2.INTER_CUBIC if min(crop.shape[:2]) < EMBED_SIZE else cv2.INTER_AREA
        resized = cv2.resize(crop, (EMBED_SIZE, EMBED_SIZE), interpolation=interpolation)

        # Even out lighting on the luma channel only.
        ycrcb = cv2.cvtColor(resized, cv2.COLOR_RGB2YCrCb)
        luma, cr, cb = cv2.split(ycrcb)
        luma = self._clahe.apply(luma)
        return np.ascontiguousarray(cv2.cvtColor(cv2.merge([luma, cr, cb]), cv2.COLOR_YCrCb2RGB))
