from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterator

import numpy as np

from .config import LED_INDEX_MAX

UNKNOWN_LABEL = "unknown"

STATIONS: dict[str, str] = {
    "Station 1": "Main Board VI",
    "Station 2": "Sub board VI",
    "Station 3": "LDA Inspection",
    "Station 4": "Front camera copper foil paste",
    "Station 5": "Front camera installation",
    "Station 6": "Rear camera installation",
    "Station 7": "IDLE",
    "Station 8": "Middle Frame Installation (1)",
    "Station 9": "Middle Frame Installation (2)",
    "Station 10": "Key Part 3 (1)",
    "Station 11": "Key Part 3 (2)",
    "Station 12": "YH2",
    "Station 13": "Middle Frame Inspection",
    "Station 14": "Battery cover Pressing (1)",
    "Station 15": "Battery cover Pressing (2)",
    "Station 16": "Battery cover VI (1)",
    "Station 17": "Battery cover VI (2)",
    "Station 18": "Vibrator installation",
    "Station 19": "Speaker installation",
    "Station 20": "Receiver installation",
}

LED_INDEXES = range(0, LED_INDEX_MAX + 1)


@dataclass(frozen=True)
class Operator:
    id: str
    name: str
    employee_id: str
    station: str
    image_path: str
    led_index: int | None = None

    @property
    def station_label(self) -> str:
        return STATIONS.get(self.station, self.station)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "Operator":
        raw_led = payload.get("ledIndex")
        return cls(
            id=str(payload.get("id") or payload["_id"]),
            name=str(payload.get("name", "")),
            employee_id=str(payload.get("employeeId", "")),
            station=str(payload.get("station", "")),
            image_path=str(payload.get("imagePath", "")),
            led_index=int(raw_led) if raw_led is not None else None,
        )


@dataclass(frozen=True)
class LabeledDescriptor:
    label: str
    descriptor: np.ndarray


@dataclass(frozen=True)
class Gallery:
    """Reference faces usable for matching.

    Built once per roster; a rebuild yields a new instance, so holding a
    reference is a consistent snapshot for the duration of an attempt.
    """

    entries: tuple[LabeledDescriptor, ...] = ()
    operators: dict[str, Operator] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[LabeledDescriptor]:
        return iter(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @property
    def labels(self) -> list[str]:
        return [entry.label for entry in self.entries]

    def operator_for(self, label: str) -> Operator | None:
        return self.operators.get(label)


@dataclass(frozen=True)
class MatchResult:
    label: str
    distance: float

    @property
    def is_match(self) -> bool:
        return self.label != UNKNOWN_LABEL

    @classmethod
    def unknown(cls, distance: float = math.inf) -> "MatchResult":
        return cls(label=UNKNOWN_LABEL, distance=distance)


@dataclass(frozen=True)
class AttendanceRecord:
    operator_id: str
    date: str
    timestamp: str
    id: str | None = None
    operator_name: str | None = None

    def to_payload(self) -> dict[str, str]:
        return {"operatorId": self.operator_id, "date": self.date, "timestamp": self.timestamp}

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "AttendanceRecord":
        operator = payload.get("operatorId")
        # Listings may embed the operator document instead of its id.
        if isinstance(operator, dict):
            operator = operator.get("id") or operator.get("_id")
        record_id = payload.get("id") or payload.get("_id")
        # A removed operator leaves its history with no operator id.
        return cls(
            operator_id=str(operator) if operator is not None else "",
            date=str(payload.get("date", "")),
            timestamp=str(payload.get("timestamp", "")),
            id=str(record_id) if record_id is not None else None,
            operator_name=payload.get("operatorName"),
        )


@dataclass(frozen=True)
class NotificationEvent:
    operator_name: str
    employee_id: str
    station: str
    status: str
    timestamp: str
    led_index: int | None = None

    @classmethod
    def for_operator(cls, operator: Operator, status: str, timestamp: str) -> "NotificationEvent":
        return cls(
            operator_name=operator.name,
            employee_id=operator.employee_id,
            station=operator.station,
            status=status,
            timestamp=timestamp,
            led_index=operator.led_index,
        )

    def led_payload(self) -> dict[str, Any]:
        return {"ledIndex": self.led_index, "status": self.status}

    def to_payload(self) -> dict[str, Any]:
        return {
            "operatorName": self.operator_name,
            "employeeId": self.employee_id,
            "station": self.station,
            "status": self.status,
            "timestamp": self.timestamp,
            "ledIndex": self.led_index,
        }
