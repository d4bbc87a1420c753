from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from functools import partial
from typing import Callable, Protocol

import numpy as np

from .camera import CameraTrack, open_camera_track
from .config import DETECTION_TIMEOUT_SECONDS, LED_STATUS_PRESENT, MATCH_THRESHOLD
from .exceptions import (
    AttendanceError,
    CameraAccessError,
    DetectionTimeoutError,
    EmptyGalleryError,
    FaceEngineError,
    ModelLoadError,
    NoFaceDetectedError,
    RecordWriteError,
    StoreError,
)
from .face_engine import FaceDetection
from .logger import setup_logger
from .matcher import FaceMatcher
from .models import AttendanceRecord, Gallery, MatchResult, NotificationEvent, Operator


class FaceModel(Protocol):
    async def load(self) -> None: ...

    def detect_single_face(self, image_bgr: np.ndarray) -> FaceDetection | None: ...


class Recorder(Protocol):
    def record_attendance(self, line: str, record: AttendanceRecord) -> AttendanceRecord: ...

    def report_failure(self, line: str, station: str | None, timestamp: str) -> None: ...


class Notifier(Protocol):
    def publish(self, event: NotificationEvent) -> bool: ...


class SessionState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    STREAMING = "streaming"
    CAMERA_FAILED = "camera_failed"
    MODEL_FAILED = "model_failed"
    DETECTING = "detecting"
    NO_FACE_FOUND = "no_face_found"
    MATCHING = "matching"
    MATCHED = "matched"
    REJECTED = "rejected"
    CLOSED = "closed"


FATAL_STATES = frozenset({SessionState.CAMERA_FAILED, SessionState.MODEL_FAILED})
TRIGGER_STATES = frozenset({SessionState.IDLE, SessionState.STREAMING})


@dataclass
class AttemptOutcome:
    state: SessionState
    match: MatchResult | None = None
    operator: Operator | None = None
    record: AttendanceRecord | None = None
    error: AttendanceError | None = None
    notified: bool = False

    @property
    def accepted(self) -> bool:
        return self.state is SessionState.MATCHED


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RecognitionSession:
    """One kiosk recognition session.

    Only one attempt runs at a time: ``trigger()`` flips the state before its
    first suspension point, so a second trigger arriving meanwhile sees a busy
    state and does nothing. The session owns the camera track and stops it on
    every way out of an attempt and on ``close()``.
    """

    def __init__(
        self,
        line: str,
        model: FaceModel,
        recorder: Recorder,
        notifier: Notifier | None = None,
        camera_factory: Callable[[], CameraTrack] = open_camera_track,
        threshold: float = MATCH_THRESHOLD,
        detection_timeout: float = DETECTION_TIMEOUT_SECONDS,
        station: str | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.line = line
        self.station = station
        self.model = model
        self.recorder = recorder
        self.notifier = notifier
        self.camera_factory = camera_factory
        self.threshold = threshold
        self.detection_timeout = detection_timeout
        self.clock = clock
        self.logger = setup_logger(self.__class__.__name__)

        self._state = SessionState.IDLE
        self._gallery = Gallery()
        self._track: CameraTrack | None = None
        self._reader: asyncio.Future | None = None
        self._fatal_error: AttendanceError | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def gallery(self) -> Gallery:
        return self._gallery

    @property
    def can_trigger(self) -> bool:
        return self._state in TRIGGER_STATES

    @property
    def closed(self) -> bool:
        return self._state is SessionState.CLOSED

    def set_gallery(self, gallery: Gallery) -> None:
        self._gallery = gallery

    async def __aenter__(self) -> "RecognitionSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def start(self) -> SessionState:
        if self._state is not SessionState.IDLE:
            return self._state

        self._state = SessionState.STARTING
        try:
            return await self._acquire()
        finally:
            # Cancelled mid-start: leave the session usable.
            if self._state is SessionState.STARTING:
                self._state = SessionState.IDLE

    async def _acquire(self) -> SessionState:
        try:
            await self.model.load()
        except ModelLoadError as exc:
            return self._fail(SessionState.MODEL_FAILED, exc)
        except Exception as exc:
            self.logger.exception("Unexpected error while loading face models")
            return self._fail(SessionState.MODEL_FAILED, ModelLoadError(f"Face model load failed: {exc!r}"))
        if self.closed:
            return self._state

        try:
            track = await asyncio.to_thread(self.camera_factory)
        except CameraAccessError as exc:
            return self._fail(SessionState.CAMERA_FAILED, exc)
        except Exception as exc:
            self.logger.exception("Unexpected error while opening the webcam")
            return self._fail(SessionState.CAMERA_FAILED, CameraAccessError(f"Failed to open webcam: {exc!r}"))

        if self.closed:
            track.stop()
            return self._state

        self._track = track
        self._state = SessionState.STREAMING
        self.logger.info("Camera streaming via %s", track.backend_name)
        return self._state

    async def trigger(self) -> AttemptOutcome | None:
        if self._state in FATAL_STATES:
            return AttemptOutcome(state=self._state, error=self._fatal_error)
        if self._state not in TRIGGER_STATES:
            self.logger.debug("Trigger ignored while %s", self._state.value)
            return None

        if self._state is SessionState.IDLE:
            state = await self.start()
            if state in FATAL_STATES:
                return AttemptOutcome(state=state, error=self._fatal_error)
            if state is not SessionState.STREAMING:
                return None

        self._state = SessionState.DETECTING
        gallery = self._gallery
        try:
            outcome = await self._attempt(gallery)
        finally:
            self._release_track()
            if not self.closed:
                self._state = SessionState.IDLE

        if outcome is not None:
            self._log_outcome(outcome)
        return outcome

    def close(self) -> None:
        if self.closed:
            return
        self._release_track()
        self._state = SessionState.CLOSED
        self.logger.info("Recognition session closed")

    async def _attempt(self, gallery: Gallery) -> AttemptOutcome | None:
        track = self._track
        now = self.clock()
        timestamp = now.isoformat()

        try:
            self._reader = asyncio.ensure_future(asyncio.to_thread(track.read_frame))
            frame = await asyncio.wait_for(asyncio.shield(self._reader), self.detection_timeout)
            detection = await asyncio.wait_for(
                asyncio.to_thread(self.model.detect_single_face, frame),
                self.detection_timeout,
            )
        except asyncio.TimeoutError:
            if self.closed:
                return None
            error = DetectionTimeoutError(f"Face detection exceeded {self.detection_timeout:.1f}s.")
            return await self._reject(SessionState.NO_FACE_FOUND, timestamp, error=error)
        except (CameraAccessError, FaceEngineError) as exc:
            if self.closed:
                return None
            return await self._reject(SessionState.NO_FACE_FOUND, timestamp, error=exc)
        except Exception as exc:
            self.logger.exception("Unexpected error while capturing or describing the frame")
            if self.closed:
                return None
            error = FaceEngineError(f"Frame capture or detection failed: {exc!r}")
            return await self._reject(SessionState.NO_FACE_FOUND, timestamp, error=error)

        if self.closed:
            return None
        if detection is None:
            error = NoFaceDetectedError("No face detected in webcam feed.")
            return await self._reject(SessionState.NO_FACE_FOUND, timestamp, error=error)

        self._state = SessionState.MATCHING
        if gallery.is_empty:
            error = EmptyGalleryError("No operators with usable reference faces.")
            return await self._reject(SessionState.REJECTED, timestamp, match=MatchResult.unknown(), error=error)

        try:
            result = FaceMatcher(gallery, self.threshold).find_best_match(detection.descriptor)
        except ValueError as exc:
            error = FaceEngineError(f"Descriptor does not fit the gallery: {exc}")
            return await self._reject(SessionState.REJECTED, timestamp, match=MatchResult.unknown(), error=error)
        operator = gallery.operator_for(result.label) if result.is_match else None
        if operator is None:
            return await self._reject(SessionState.REJECTED, timestamp, match=result)

        self._state = SessionState.MATCHED
        return await self._accept(operator, result, now)

    async def _accept(self, operator: Operator, result: MatchResult, now: datetime) -> AttemptOutcome:
        timestamp = now.isoformat()
        record = AttendanceRecord(operator_id=operator.id, date=now.date().isoformat(), timestamp=timestamp)
        outcome = AttemptOutcome(state=SessionState.MATCHED, match=result, operator=operator)

        try:
            outcome.record = await asyncio.to_thread(self.recorder.record_attendance, self.line, record)
        except RecordWriteError as exc:
            self.logger.error("Attendance write failed for %s: %s", operator.name, exc)
            outcome.error = exc

        if self.notifier is not None and not self.closed:
            event = NotificationEvent.for_operator(operator, LED_STATUS_PRESENT, timestamp)
            outcome.notified = self.notifier.publish(event)
        return outcome

    async def _reject(
        self,
        state: SessionState,
        timestamp: str,
        match: MatchResult | None = None,
        error: AttendanceError | None = None,
    ) -> AttemptOutcome:
        self._state = state
        try:
            await asyncio.to_thread(self.recorder.report_failure, self.line, self.station, timestamp)
        except StoreError as exc:
            self.logger.warning("Could not report failed attempt: %s", exc)
        return AttemptOutcome(state=state, match=match, error=error)

    def _release_track(self) -> None:
        track = self._track
        reader = self._reader
        self._track = None
        self._reader = None
        if track is None:
            return
        if reader is not None and not reader.done():
            # A read is still inside the driver; release the device once it returns.
            self.logger.warning("Frame read still pending; camera release deferred")
            reader.add_done_callback(partial(self._stop_after_read, track))
            return
        self._stop_track(track)

    def _stop_after_read(self, track: CameraTrack, reader: asyncio.Future) -> None:
        if not reader.cancelled() and reader.exception() is not None:
            self.logger.debug("Late frame read failed: %s", reader.exception())
        self._stop_track(track)

    def _stop_track(self, track: CameraTrack) -> None:
        if track.stop():
            self.logger.info("Camera track stopped")

    def _fail(self, state: SessionState, exc: AttendanceError) -> SessionState:
        self._fatal_error = exc
        if self.closed:
            return self._state
        self._state = state
        self.logger.error("Recognition session unusable (%s): %s", state.value, exc)
        return state

    def _log_outcome(self, outcome: AttemptOutcome) -> None:
        if outcome.accepted:
            self.logger.info(
                "Matched %s (%s) distance=%.3f",
                outcome.operator.name,
                outcome.operator.id,
                outcome.match.distance,
            )
        else:
            self.logger.info("Attempt ended %s: %s", outcome.state.value, outcome.error or "no match under threshold")
