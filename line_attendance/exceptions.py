class AttendanceError(Exception):
    """Base exception for the attendance kiosk."""


class ModelLoadError(AttendanceError):
    """Raised when the face models cannot be loaded. Fatal for the session."""


class FaceEngineError(AttendanceError):
    """Raised when face detection or descriptor extraction fails."""


class CameraAccessError(AttendanceError):
    """Raised when the webcam cannot be opened or stops delivering frames."""


class NoFaceDetectedError(AttendanceError):
    """Raised when the live frame contains no usable face."""


class DetectionTimeoutError(AttendanceError):
    """Raised when frame capture or detection runs past its timeout."""


class EmptyGalleryError(AttendanceError):
    """Raised when no operator photo produced a usable reference face."""


class StoreError(AttendanceError):
    """Raised when the attendance store API call fails."""


class RecordWriteError(StoreError):
    """Raised when an attendance record cannot be written."""


class NotificationError(AttendanceError):
    """Raised when a channel message cannot be published."""
