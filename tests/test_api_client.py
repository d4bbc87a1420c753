import json

import pytest
import requests

from line_attendance.api_client import AttendanceApiClient
from line_attendance.exceptions import RecordWriteError, StoreError
from line_attendance.models import AttendanceRecord


def make_response(status_code, body=None, reason="OK"):
    resp = requests.Response()
    resp.status_code = status_code
    resp.reason = reason
    resp.url = "http://store/api"
    resp._content = json.dumps(body).encode() if body is not None else b""
    return resp


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def client_with(*responses, token=""):
    session = FakeSession(*responses)
    return AttendanceApiClient(base_url="http://store/", token=token, session=session), session


def test_list_operators_parses_roster():
    client, session = client_with(
        make_response(
            200,
            [
                {
                    "id": "op1",
                    "name": "Alice",
                    "employeeId": "E1",
                    "station": "Station 3",
                    "imagePath": "/images/a.jpg",
                    "ledIndex": 4,
                },
                {"_id": "op2", "name": "Bob", "employeeId": "E2", "station": "Station 1", "imagePath": "/images/b.jpg"},
            ],
        ),
        token="abc",
    )

    operators = client.list_operators("line1")

    assert [op.id for op in operators] == ["op1", "op2"]
    assert operators[0].led_index == 4
    assert operators[0].station_label == "LDA Inspection"
    assert operators[1].led_index is None
    method, url, kwargs = session.calls[0]
    assert (method, url) == ("GET", "http://store/api/operators/line1")
    assert kwargs["headers"] == {"Authorization": "Bearer abc"}


def test_record_attendance_posts_payload():
    record = AttendanceRecord(operator_id="op1", date="2026-10-18", timestamp="2026-10-18T08:30:00+00:00")
    client, session = client_with(
        make_response(201, {"id": "rec9", "operatorId": "op1", "date": "2026-10-18", "timestamp": record.timestamp})
    )

    saved = client.record_attendance("line1", record)

    assert saved.id == "rec9"
    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "http://store/api/attendance/line1")
    assert kwargs["json"] == {"operatorId": "op1", "date": "2026-10-18", "timestamp": record.timestamp}
    assert kwargs["headers"] == {}


def test_record_attendance_failure_is_write_error():
    record = AttendanceRecord(operator_id="op1", date="2026-10-18", timestamp="t")
    client, _ = client_with(make_response(500, {"detail": "db locked"}, reason="Server Error"))

    with pytest.raises(RecordWriteError) as excinfo:
        client.record_attendance("line1", record)
    assert "500 db locked" in str(excinfo.value)


def test_unreachable_store_is_store_error():
    client, _ = client_with(requests.ConnectionError("refused"))
    with pytest.raises(StoreError):
        client.list_operators("line1")


def test_error_body_that_is_not_an_object():
    client, _ = client_with(make_response(404, ["nope"], reason="Not Found"))
    with pytest.raises(StoreError) as excinfo:
        client.list_attendance("line1", "2026-10-18")
    assert "404 Not Found" in str(excinfo.value)


def test_list_attendance_accepts_embedded_operator():
    client, _ = client_with(
        make_response(
            200,
            [{"_id": "r1", "operatorId": {"_id": "op1", "name": "Alice"}, "date": "2026-10-18", "timestamp": "t"}],
        )
    )

    records = client.list_attendance("line1", "2026-10-18")

    assert records == [AttendanceRecord(operator_id="op1", date="2026-10-18", timestamp="t", id="r1")]


def test_report_failure_and_upload(tmp_path):
    photo = tmp_path / "face.jpg"
    photo.write_bytes(b"\xff\xd8fake")
    client, session = client_with(
        make_response(201, {"id": 1, "line": "line1", "station": "Station 2", "timestamp": "t"}),
        make_response(201, {"imagePath": "/images/operator-1.jpg"}),
    )

    client.report_failure("line1", "Station 2", "t")
    image_path = client.upload_photo(photo)

    assert image_path == "/images/operator-1.jpg"
    assert session.calls[0][2]["json"] == {"station": "Station 2", "timestamp": "t"}
    assert session.calls[1][1] == "http://store/upload"
    assert session.calls[1][2]["files"]["file"][0] == "face.jpg"
