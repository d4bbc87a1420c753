from __future__ import annotations

from datetime import date

from fastapi import APIRouter, HTTPException, status
from sqlalchemy.orm import Session

from attendance_store.api.deps import db_session
from attendance_store.schemas.attendance import (
    AttendanceCreate,
    AttendanceResponse,
    FailedAttemptCreate,
    FailedAttemptResponse,
)
from attendance_store.services import attendance
from attendance_store.services.roster import UnknownOperator

router = APIRouter(prefix="/attendance", tags=["attendance"])


@router.get("/{line}/{day}", response_model=list[AttendanceResponse])
def list_attendance(line: str, day: date, db: Session = db_session()):
    return [attendance.to_response(entry) for entry in attendance.attendance_for_day(db, line, day.isoformat())]


@router.post("/{line}", response_model=AttendanceResponse, status_code=status.HTTP_201_CREATED)
def mark_attendance(line: str, payload: AttendanceCreate, db: Session = db_session()):
    try:
        entry = attendance.record_attendance(db, line, payload)
    except UnknownOperator as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return attendance.to_response(entry)


@router.post("/{line}/fail", response_model=FailedAttemptResponse, status_code=status.HTTP_201_CREATED)
def log_failed_attempt(line: str, payload: FailedAttemptCreate, db: Session = db_session()):
    return attendance.record_failure(db, line, payload)
