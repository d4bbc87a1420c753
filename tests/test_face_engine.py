import numpy as np
import pytest

from line_attendance import face_engine
from line_attendance.exceptions import FaceEngineError, ModelLoadError
from line_attendance.face_engine import ModelService


async def test_load_failure_is_remembered(monkeypatch):
    monkeypatch.setattr(face_engine, "mp", None)
    service = ModelService()
    calls = []
    real_load = service._load_models

    def counting_load():
        calls.append(1)
        real_load()

    monkeypatch.setattr(service, "_load_models", counting_load)

    with pytest.raises(ModelLoadError):
        await service.load()
    with pytest.raises(ModelLoadError):
        await service.load()

    assert len(calls) == 1
    assert not service.ready


async def test_teardown_allows_retry(monkeypatch):
    monkeypatch.setattr(face_engine, "mp", None)
    service = ModelService()
    with pytest.raises(ModelLoadError):
        await service.load()

    service.teardown()
    calls = []
    monkeypatch.setattr(service, "_load_models", lambda: calls.append(1))

    await service.load()
    assert calls == [1]


def test_detection_before_load_raises():
    with pytest.raises(FaceEngineError):
        ModelService().detect_single_face(np.zeros((8, 8, 3), dtype=np.uint8))


def test_square_crop_stays_inside_frame():
    rgb = np.zeros((100, 200, 3), dtype=np.uint8)
    crop = ModelService._square_crop(rgb, 150, 60, 200, 100)
    assert crop.shape[0] <= 100
    assert crop.shape[1] <= 200
    assert crop.size > 0
