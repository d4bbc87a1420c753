from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

import requests

from .config import API_BASE_URL, API_TOKEN, REQUEST_TIMEOUT_SECONDS
from .exceptions import RecordWriteError, StoreError
from .logger import setup_logger
from .models import AttendanceRecord, Operator


class AttendanceApiClient:
    """Request/response client for the operator and attendance store."""

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        token: str = API_TOKEN,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()
        self._session_lock = threading.Lock()
        self.logger = setup_logger(self.__class__.__name__)

    def _headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        headers = {**self._headers(), **kwargs.pop("headers", {})}
        with self._session_lock:
            resp = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        resp.raise_for_status()
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    def _call(self, method: str, path: str, **kwargs) -> Any:
        try:
            return self._request(method, path, **kwargs)
        except requests.RequestException as exc:
            raise StoreError(f"{method} {path} failed: {_describe_error(exc)}") from exc
        except ValueError as exc:
            raise StoreError(f"{method} {path} returned invalid JSON.") from exc

    def list_operators(self, line: str) -> list[Operator]:
        body = self._call("GET", f"/api/operators/{line}") or []
        return [Operator.from_api(item) for item in body]

    def list_attendance(self, line: str, day: str) -> list[AttendanceRecord]:
        body = self._call("GET", f"/api/attendance/{line}/{day}")
        if not isinstance(body, list):
            return []
        return [AttendanceRecord.from_api(item) for item in body]

    def record_attendance(self, line: str, record: AttendanceRecord) -> AttendanceRecord:
        try:
            body = self._request("POST", f"/api/attendance/{line}", json=record.to_payload())
        except (requests.RequestException, ValueError) as exc:
            raise RecordWriteError(f"Attendance write for {record.operator_id} failed: {_describe_error(exc)}") from exc
        if not isinstance(body, dict):
            return record
        return AttendanceRecord.from_api(body)

    def report_failure(self, line: str, station: str | None, timestamp: str) -> None:
        self._call("POST", f"/api/attendance/{line}/fail", json={"station": station, "timestamp": timestamp})

    def upload_photo(self, photo_path: Path) -> str:
        photo_path = Path(photo_path)
        with photo_path.open("rb") as handle:
            body = self._call("POST", "/upload", files={"file": (photo_path.name, handle)})
        return str(body["imagePath"])

    def create_operator(
        self,
        line: str,
        name: str,
        employee_id: str,
        station: str,
        image_path: str,
        led_index: int,
    ) -> Operator:
        payload = {
            "name": name,
            "employeeId": employee_id,
            "station": station,
            "imagePath": image_path,
            "ledIndex": led_index,
        }
        return Operator.from_api(self._call("POST", f"/api/operators/{line}", json=payload))


def _describe_error(exc: Exception) -> str:
    response = getattr(exc, "response", None)
    if response is None:
        return str(exc)
    try:
        payload = response.json()
    except ValueError:
        payload = None
    detail = payload.get("detail") if isinstance(payload, dict) else None
    return f"{response.status_code} {detail or response.reason}"
