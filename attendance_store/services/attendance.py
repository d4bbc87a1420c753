from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from attendance_store.db.models import AttendanceEntry, FailedAttempt
from attendance_store.schemas.attendance import AttendanceCreate, AttendanceResponse, FailedAttemptCreate

from .roster import get_operator

logger = logging.getLogger("attendance_store.attendance")


def to_response(entry: AttendanceEntry) -> AttendanceResponse:
    return AttendanceResponse.model_validate(entry)


def record_attendance(db: Session, line: str, payload: AttendanceCreate) -> AttendanceEntry:
    operator = get_operator(db, line, payload.operator_id)
    entry = AttendanceEntry(
        line=line,
        operator_id=operator.id,
        operator_name=operator.name,
        employee_id=operator.employee_id,
        station=operator.station,
        date=payload.date.isoformat(),
        timestamp=payload.timestamp,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info("Attendance recorded for %s on %s at %s", operator.name, line, entry.timestamp)
    return entry


def attendance_for_day(db: Session, line: str, day: str) -> list[AttendanceEntry]:
    stmt = (
        select(AttendanceEntry)
        .where(AttendanceEntry.line == line, AttendanceEntry.date == day)
        .order_by(AttendanceEntry.timestamp)
    )
    return list(db.scalars(stmt))


def record_failure(db: Session, line: str, payload: FailedAttemptCreate) -> FailedAttempt:
    row = FailedAttempt(line=line, station=payload.station, timestamp=payload.timestamp)
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("Failed recognition attempt on %s station=%s", line, payload.station)
    return row
