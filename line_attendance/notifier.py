from __future__ import annotations

import json
import threading
import uuid
from typing import Any, Callable

import paho.mqtt.client as mqtt

from .config import (
    EVENT_TOPIC_TEMPLATE,
    LED_TOPIC_TEMPLATE,
    MQTT_HOST,
    MQTT_KEEPALIVE_SECONDS,
    MQTT_PASSWORD,
    MQTT_PATH,
    MQTT_PORT,
    MQTT_QOS,
    MQTT_RECONNECT_SECONDS,
    MQTT_TRANSPORT,
    MQTT_USE_TLS,
    MQTT_USERNAME,
)
from .exceptions import NotificationError
from .logger import setup_logger
from .models import NotificationEvent


def _default_client_factory(client_id: str, transport: str) -> mqtt.Client:
    return mqtt.Client(
        mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        clean_session=True,
        transport=transport,
    )


class ChannelService:
    """Process-wide broker connection.

    The network loop runs in paho's background thread and keeps reconnecting
    while the broker is unreachable; nothing here blocks the caller.
    """

    def __init__(
        self,
        host: str = MQTT_HOST,
        port: int = MQTT_PORT,
        path: str = MQTT_PATH,
        transport: str = MQTT_TRANSPORT,
        use_tls: bool = MQTT_USE_TLS,
        username: str = MQTT_USERNAME,
        password: str = MQTT_PASSWORD,
        qos: int = MQTT_QOS,
        reconnect_seconds: int = MQTT_RECONNECT_SECONDS,
        keepalive: int = MQTT_KEEPALIVE_SECONDS,
        client_factory: Callable[[str, str], Any] = _default_client_factory,
    ):
        self.host = host
        self.port = port
        self.path = path
        self.transport = transport
        self.use_tls = use_tls
        self.username = username
        self.password = password
        self.qos = qos
        self.reconnect_seconds = max(1, reconnect_seconds)
        self.keepalive = keepalive
        self.client_factory = client_factory
        self.logger = setup_logger(self.__class__.__name__)

        self._client = None
        self._connected = threading.Event()

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    def connect(self) -> None:
        if self._client is not None:
            return

        client = self.client_factory(f"kiosk_{uuid.uuid4().hex[:8]}", self.transport)
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        if self.username:
            client.username_pw_set(self.username, self.password)
        if self.transport == "websockets":
            client.ws_set_options(path=self.path)
        if self.use_tls:
            client.tls_set()
        client.reconnect_delay_set(min_delay=self.reconnect_seconds, max_delay=self.reconnect_seconds * 30)

        self._client = client
        try:
            client.connect_async(self.host, self.port, keepalive=self.keepalive)
        except (OSError, ValueError) as exc:
            self.logger.error("Broker connection to %s:%s failed: %s", self.host, self.port, exc)
        client.loop_start()
        self.logger.info("Connecting to broker %s:%s", self.host, self.port)

    def disconnect(self) -> None:
        client = self._client
        if client is None:
            return
        self._client = None
        self._connected.clear()
        client.disconnect()
        client.loop_stop()

    def publish(self, topic: str, payload: dict[str, Any]) -> None:
        client = self._client
        if client is None or not self.connected:
            raise NotificationError(f"Broker not connected; dropped message for {topic}.")

        body = json.dumps(payload, separators=(",", ":"))
        try:
            info = client.publish(topic, body, qos=self.qos)
        except (OSError, ValueError) as exc:
            raise NotificationError(f"Publish to {topic} failed: {exc}") from exc
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise NotificationError(f"Publish to {topic} refused: {mqtt.error_string(info.rc)}")
        self.logger.info("Published %s to %s", body, topic)

    def _on_connect(self, _client, _userdata, _flags, reason_code, _properties=None) -> None:
        if reason_code.is_failure:
            self.logger.error("Broker refused connection: %s", reason_code)
            self._connected.clear()
            return
        self.logger.info("Connected to broker %s:%s", self.host, self.port)
        self._connected.set()

    def _on_disconnect(self, _client, _userdata, _flags, reason_code, _properties=None) -> None:
        self._connected.clear()
        self.logger.warning("Broker connection closed (%s); retrying in background", reason_code)


class AttendanceNotifier:
    """Publishes attendance outcomes for one production line, best-effort."""

    def __init__(self, channel: ChannelService, line: str):
        self.channel = channel
        self.line = line
        self.logger = setup_logger(self.__class__.__name__)

    @property
    def led_topic(self) -> str:
        return LED_TOPIC_TEMPLATE.format(line=self.line)

    @property
    def event_topic(self) -> str:
        return EVENT_TOPIC_TEMPLATE.format(line=self.line)

    def publish(self, event: NotificationEvent) -> bool:
        try:
            if event.led_index is not None:
                self.channel.publish(self.led_topic, event.led_payload())
            self.channel.publish(self.event_topic, event.to_payload())
        except NotificationError as exc:
            self.logger.warning("Notification for %s dropped: %s", event.employee_id, exc)
            return False
        return True
