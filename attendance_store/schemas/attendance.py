from __future__ import annotations

import datetime as dt

from .operator import CamelModel


class AttendanceCreate(CamelModel):
    operator_id: str
    date: dt.date
    timestamp: dt.datetime


class AttendanceResponse(CamelModel):
    id: str
    line: str
    operator_id: str | None = None
    operator_name: str
    employee_id: str
    station: str
    date: str
    timestamp: dt.datetime


class FailedAttemptCreate(CamelModel):
    station: str | None = None
    timestamp: dt.datetime


class FailedAttemptResponse(CamelModel):
    id: str
    line: str
    station: str | None
    timestamp: dt.datetime


class UploadResponse(CamelModel):
    image_path: str
