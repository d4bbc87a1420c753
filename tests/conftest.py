import os
import tempfile
import threading
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

import numpy as np
import pytest

_TMP = Path(tempfile.mkdtemp(prefix="line-attendance-tests-"))
os.environ.setdefault("STORE_DATABASE_URL", f"sqlite:///{_TMP / 'store.db'}")
os.environ.setdefault("STORE_UPLOAD_DIR", str(_TMP / "images"))
os.environ.setdefault("KIOSK_LOG_DIR", str(_TMP / "logs"))

from line_attendance.exceptions import CameraAccessError, ModelLoadError, RecordWriteError  # noqa: E402
from line_attendance.face_engine import FaceDetection  # noqa: E402
from line_attendance.models import Gallery, LabeledDescriptor, Operator  # noqa: E402

FIXED_NOW = datetime(2026, 10, 18, 8, 30, tzinfo=timezone.utc)


class FakeTrack:
    backend_name = "fake"

    def __init__(self, frame=None, read_gate=None):
        self.frame = frame if frame is not None else np.zeros((8, 8, 3), dtype=np.uint8)
        self.read_gate = read_gate
        self.stop_calls = 0
        self.releases = 0
        self._active = True

    def read_frame(self):
        if self.read_gate is not None:
            self.read_gate.wait(timeout=5)
        if not self._active:
            raise CameraAccessError("stopped")
        return self.frame

    def stop(self):
        self.stop_calls += 1
        if not self._active:
            return False
        self._active = False
        self.releases += 1
        return True


class CameraFactory:
    def __init__(self, fail=False, error=None, read_gate=None):
        self.fail = fail
        self.error = error
        self.read_gate = read_gate
        self.tracks = []

    def __call__(self):
        if self.error is not None:
            raise self.error
        if self.fail:
            raise CameraAccessError("Permission denied")
        track = FakeTrack(read_gate=self.read_gate)
        self.tracks.append(track)
        return track


class FakeModel:
    def __init__(self, descriptor=None, fail_load=False, gate=None, load_error=None, load_gate=None):
        self.descriptor = descriptor
        self.fail_load = fail_load
        self.load_error = load_error
        self.load_gate = load_gate
        self.gate = gate
        self.load_calls = 0
        self.detect_calls = 0

    async def load(self):
        self.load_calls += 1
        if self.load_gate is not None:
            await self.load_gate.wait()
        if self.load_error is not None:
            raise self.load_error
        if self.fail_load:
            raise ModelLoadError("model assets unavailable")

    def detect_single_face(self, image_bgr):
        self.detect_calls += 1
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.descriptor is None:
            return None
        return FaceDetection(
            descriptor=np.asarray(self.descriptor, dtype=np.float32),
            box=np.zeros(4, dtype=np.float32),
            score=0.9,
        )


class FakeRecorder:
    def __init__(self, fail=False):
        self.fail = fail
        self.records = []
        self.failures = []

    def record_attendance(self, line, record):
        if self.fail:
            raise RecordWriteError("503 Service Unavailable")
        self.records.append((line, record))
        return replace(record, id=f"rec-{len(self.records)}")

    def report_failure(self, line, station, timestamp):
        self.failures.append((line, station, timestamp))


class FakeNotifier:
    def __init__(self):
        self.events = []

    def publish(self, event):
        self.events.append(event)
        return True


def make_operator(op_id, name=None, station="Station 1", led_index=None):
    return Operator(
        id=op_id,
        name=name or f"Operator {op_id}",
        employee_id=f"E-{op_id}",
        station=station,
        image_path=f"/images/{op_id}.jpg",
        led_index=led_index,
    )


def make_gallery(*items):
    """items: (operator, descriptor) pairs in insertion order."""
    entries = tuple(LabeledDescriptor(op.id, np.asarray(vec, dtype=np.float32)) for op, vec in items)
    return Gallery(entries=entries, operators={op.id: op for op, _ in items})


@pytest.fixture
def gate():
    event = threading.Event()
    yield event
    event.set()
