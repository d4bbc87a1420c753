import os
from pathlib import Path


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


BASE_DIR = Path(__file__).resolve().parent.parent
LOG_DIR = Path(os.getenv("KIOSK_LOG_DIR", str(BASE_DIR / "logs")))

# Attendance store (REST collaborator)
API_BASE_URL = os.getenv("KIOSK_API_BASE_URL", "http://127.0.0.1:8000")
API_TOKEN = os.getenv("KIOSK_API_TOKEN", "")
# Operator photos are served relative to this URL; empty means the API host.
PHOTO_BASE_URL = os.getenv("KIOSK_PHOTO_BASE_URL", "")
REQUEST_TIMEOUT_SECONDS = _float_env("KIOSK_REQUEST_TIMEOUT_SECONDS", 8.0)
DEFAULT_LINE = os.getenv("KIOSK_LINE", "line1")

# Webcam settings
CAMERA_INDEX = _int_env("KIOSK_CAMERA_INDEX", 0)
FRAME_WIDTH = _int_env("KIOSK_FRAME_WIDTH", 640)
FRAME_HEIGHT = _int_env("KIOSK_FRAME_HEIGHT", 480)
CAMERA_WARMUP_READS = _int_env("KIOSK_CAMERA_WARMUP_READS", 6)

# Detection / recognition settings
FACE_MIN_CONFIDENCE = _float_env("KIOSK_FACE_MIN_CONFIDENCE", 0.5)
MIN_FACE_SIZE = _int_env("KIOSK_MIN_FACE_SIZE", 40)
MATCH_THRESHOLD = _float_env("KIOSK_MATCH_THRESHOLD", 0.6)
DETECTION_TIMEOUT_SECONDS = _float_env("KIOSK_DETECTION_TIMEOUT_SECONDS", 10.0)
DEVICE = os.getenv("KIOSK_DEVICE", "auto")

# Operator roster
LED_INDEX_MAX = 20

# LED / event channel (MQTT over secure websockets by default)
MQTT_HOST = os.getenv("KIOSK_MQTT_HOST", "localhost")
MQTT_PORT = _int_env("KIOSK_MQTT_PORT", 8884)
MQTT_PATH = os.getenv("KIOSK_MQTT_PATH", "/mqtt")
MQTT_TRANSPORT = os.getenv("KIOSK_MQTT_TRANSPORT", "websockets")
MQTT_USE_TLS = _bool_env("KIOSK_MQTT_USE_TLS", True)
MQTT_USERNAME = os.getenv("KIOSK_MQTT_USERNAME", "")
MQTT_PASSWORD = os.getenv("KIOSK_MQTT_PASSWORD", "")
MQTT_QOS = _int_env("KIOSK_MQTT_QOS", 1)
MQTT_RECONNECT_SECONDS = _int_env("KIOSK_MQTT_RECONNECT_SECONDS", 1)
MQTT_KEEPALIVE_SECONDS = _int_env("KIOSK_MQTT_KEEPALIVE_SECONDS", 30)
LED_TOPIC_TEMPLATE = "attendance/{line}/led"
EVENT_TOPIC_TEMPLATE = "attendance/{line}/events"
LED_STATUS_PRESENT = "present"
