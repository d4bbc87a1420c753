from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from functools import partial
from typing import Callable

from .api_client import AttendanceApiClient
from .camera import open_camera_track
from .config import CAMERA_INDEX, DETECTION_TIMEOUT_SECONDS, MATCH_THRESHOLD
from .exceptions import EmptyGalleryError, RecordWriteError, StoreError
from .face_engine import ModelService
from .gallery import GalleryBuilder
from .logger import setup_logger
from .models import Gallery
from .notifier import AttendanceNotifier, ChannelService
from .session import AttemptOutcome, RecognitionSession, SessionState


class KioskRuntime:
    """Wires the process-wide services into one recognition session per kiosk."""

    def __init__(
        self,
        line: str,
        station: str | None = None,
        api: AttendanceApiClient | None = None,
        model: ModelService | None = None,
        channel: ChannelService | None = None,
        gallery_builder: GalleryBuilder | None = None,
        camera_index: int = CAMERA_INDEX,
        threshold: float = MATCH_THRESHOLD,
        detection_timeout: float = DETECTION_TIMEOUT_SECONDS,
    ):
        self.line = line
        self.station = station
        self.api = api or AttendanceApiClient()
        self.model = model or ModelService()
        self.channel = channel or ChannelService()
        self.gallery_builder = gallery_builder or GalleryBuilder(self.model)
        self.logger = setup_logger(self.__class__.__name__)
        self.session = RecognitionSession(
            line=line,
            station=station,
            model=self.model,
            recorder=self.api,
            notifier=AttendanceNotifier(self.channel, line),
            camera_factory=partial(open_camera_track, camera_index),
            threshold=threshold,
            detection_timeout=detection_timeout,
        )

    async def prepare(self) -> Gallery:
        """Load models, connect the channel and build the first gallery.

        A model failure propagates; it leaves the kiosk unable to recognise anyone.
        """
        await self.model.load()
        self.channel.connect()
        return await self.refresh_roster()

    async def refresh_roster(self) -> Gallery:
        operators = await asyncio.to_thread(self.api.list_operators, self.line)
        gallery = await self.gallery_builder.build(operators, station=self.station)
        self.session.set_gallery(gallery)
        return gallery

    async def mark_attendance(self) -> AttemptOutcome | None:
        return await self.session.trigger()

    def shutdown(self) -> None:
        self.session.close()
        self.channel.disconnect()
        self.model.teardown()


def describe_outcome(outcome: AttemptOutcome | None) -> str:
    if outcome is None:
        return "Recognition already in progress."

    state = outcome.state
    if state is SessionState.MATCHED:
        operator = outcome.operator
        if isinstance(outcome.error, RecordWriteError):
            return f"Recognised {operator.name} but marking attendance failed. Please try again."
        return (
            f"Attendance marked for {operator.name} at {operator.station_label} "
            f"(distance: {outcome.match.distance:.3f})"
        )
    if state is SessionState.REJECTED:
        if isinstance(outcome.error, EmptyGalleryError):
            return "No operators with valid face data for this station."
        return "No suitable operator found for the detected face."
    if state is SessionState.NO_FACE_FOUND:
        return str(outcome.error) if outcome.error else "No face detected in webcam feed."
    if state is SessionState.CAMERA_FAILED:
        return "Failed to access webcam. Please ensure camera access is granted."
    if state is SessionState.MODEL_FAILED:
        return "Face models could not be loaded; recognition is unavailable."
    return state.value


HELP = "[Enter] mark attendance  [r] reload operators  [q] quit"


async def run_interactive(runtime: KioskRuntime, read_line: Callable[[str], str] = input) -> int:
    try:
        gallery = await runtime.prepare()
        print(f"Line {runtime.line}: {len(gallery)} operator face(s) loaded.")
        if gallery.is_empty:
            print("No valid face descriptors found for operators.")
        print(HELP)

        while True:
            try:
                command = (await asyncio.to_thread(read_line, "> ")).strip().lower()
            except EOFError:
                break

            if command == "q":
                break
            if command == "r":
                try:
                    gallery = await runtime.refresh_roster()
                except StoreError as exc:
                    runtime.logger.warning("Roster reload failed, keeping current gallery: %s", exc)
                    print(f"Could not reload operators ({exc}); still using {len(runtime.session.gallery)} face(s).")
                    continue
                print(f"{len(gallery)} operator face(s) loaded.")
                continue

            outcome = await runtime.mark_attendance()
            print(describe_outcome(outcome))
            if outcome is not None and outcome.state in (SessionState.CAMERA_FAILED, SessionState.MODEL_FAILED):
                return 1
    finally:
        runtime.shutdown()
    return 0


def today() -> str:
    return datetime.now(timezone.utc).date().isoformat()
