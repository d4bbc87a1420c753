import json
from types import SimpleNamespace

import paho.mqtt.client as mqtt
import pytest

from line_attendance.exceptions import NotificationError
from line_attendance.models import NotificationEvent
from line_attendance.notifier import AttendanceNotifier, ChannelService

from .conftest import make_operator


class FakeMqttClient:
    def __init__(self, client_id, transport, rc=mqtt.MQTT_ERR_SUCCESS):
        self.client_id = client_id
        self.transport = transport
        self.rc = rc
        self.on_connect = None
        self.on_disconnect = None
        self.credentials = None
        self.ws_path = None
        self.tls = False
        self.reconnect_delay = None
        self.connect_args = None
        self.loop_running = False
        self.published = []

    def username_pw_set(self, username, password=None):
        self.credentials = (username, password)

    def ws_set_options(self, path="/mqtt", headers=None):
        self.ws_path = path

    def tls_set(self):
        self.tls = True

    def reconnect_delay_set(self, min_delay=1, max_delay=120):
        self.reconnect_delay = (min_delay, max_delay)

    def connect_async(self, host, port=1883, keepalive=60):
        self.connect_args = (host, port, keepalive)

    def loop_start(self):
        self.loop_running = True

    def loop_stop(self):
        self.loop_running = False

    def disconnect(self):
        pass

    def publish(self, topic, payload, qos=0):
        self.published.append((topic, json.loads(payload), qos))
        return SimpleNamespace(rc=self.rc)


class FakeFactory:
    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.clients = []

    def __call__(self, client_id, transport):
        client = FakeMqttClient(client_id, transport, **self.kwargs)
        self.clients.append(client)
        return client


def connected_channel(factory=None, **kwargs):
    factory = factory or FakeFactory()
    channel = ChannelService(host="broker.local", port=8884, client_factory=factory, **kwargs)
    channel.connect()
    client = factory.clients[0]
    client.on_connect(client, None, None, SimpleNamespace(is_failure=False), None)
    return channel, client


def present_event(led_index=3):
    operator = make_operator("a", name="Alice", station="Station 2", led_index=led_index)
    return NotificationEvent.for_operator(operator, "present", "2026-10-18T08:30:00+00:00")


def test_connect_configures_client_without_blocking():
    factory = FakeFactory()
    channel = ChannelService(
        host="broker.local",
        port=8884,
        path="/mqtt",
        transport="websockets",
        use_tls=True,
        username="kiosk",
        password="secret",
        reconnect_seconds=1,
        keepalive=30,
        client_factory=factory,
    )

    channel.connect()
    channel.connect()

    assert len(factory.clients) == 1
    client = factory.clients[0]
    assert client.client_id.startswith("kiosk_")
    assert client.transport == "websockets"
    assert client.ws_path == "/mqtt"
    assert client.tls
    assert client.credentials == ("kiosk", "secret")
    assert client.reconnect_delay == (1, 30)
    assert client.connect_args == ("broker.local", 8884, 30)
    assert client.loop_running
    assert not channel.connected


def test_connection_state_follows_callbacks():
    channel, client = connected_channel()
    assert channel.connected

    client.on_disconnect(client, None, None, SimpleNamespace(is_failure=True), None)
    assert not channel.connected

    client.on_connect(client, None, None, SimpleNamespace(is_failure=True), None)
    assert not channel.connected


def test_publish_requires_connection():
    channel = ChannelService(client_factory=FakeFactory())
    with pytest.raises(NotificationError):
        channel.publish("attendance/line1/led", {"ledIndex": 1, "status": "present"})


def test_refused_publish_raises():
    channel, _ = connected_channel(FakeFactory(rc=mqtt.MQTT_ERR_NO_CONN))
    with pytest.raises(NotificationError):
        channel.publish("attendance/line1/led", {"ledIndex": 1, "status": "present"})


def test_notifier_publishes_led_and_event_messages():
    channel, client = connected_channel(qos=1)
    notifier = AttendanceNotifier(channel, "line2")

    assert notifier.publish(present_event()) is True

    assert client.published == [
        ("attendance/line2/led", {"ledIndex": 3, "status": "present"}, 1),
        (
            "attendance/line2/events",
            {
                "operatorName": "Alice",
                "employeeId": "E-a",
                "station": "Station 2",
                "status": "present",
                "timestamp": "2026-10-18T08:30:00+00:00",
                "ledIndex": 3,
            },
            1,
        ),
    ]


def test_operator_without_led_only_gets_event_message():
    channel, client = connected_channel()
    notifier = AttendanceNotifier(channel, "line1")

    assert notifier.publish(present_event(led_index=None))

    assert [topic for topic, _, _ in client.published] == ["attendance/line1/events"]


def test_notifier_swallows_disconnected_channel():
    notifier = AttendanceNotifier(ChannelService(client_factory=FakeFactory()), "line1")
    assert notifier.publish(present_event()) is False


def test_disconnect_stops_loop():
    channel, client = connected_channel()
    channel.disconnect()

    assert not client.loop_running
    assert not channel.connected
