from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from attendance_store.db.models import Operator
from attendance_store.schemas.operator import OperatorCreate
from line_attendance.models import LED_INDEXES

logger = logging.getLogger("attendance_store.roster")


class LedIndexConflict(Exception):
    pass


class UnknownOperator(Exception):
    pass


def list_operators(db: Session, line: str) -> list[Operator]:
    return list(db.scalars(select(Operator).where(Operator.line == line).order_by(Operator.created_at, Operator.id)))


def get_operator(db: Session, line: str, operator_id: str) -> Operator:
    row = db.scalar(select(Operator).where(Operator.line == line, Operator.id == operator_id))
    if row is None:
        raise UnknownOperator(f"Operator '{operator_id}' not found on {line}.")
    return row


def available_led_indexes(db: Session, line: str) -> list[int]:
    taken = set(
        db.scalars(select(Operator.led_index).where(Operator.line == line, Operator.led_index.is_not(None)))
    )
    return [idx for idx in LED_INDEXES if idx not in taken]


def add_operator(db: Session, line: str, payload: OperatorCreate) -> Operator:
    if payload.led_index is not None:
        holder = db.scalar(
            select(Operator).where(Operator.line == line, Operator.led_index == payload.led_index)
        )
        if holder is not None:
            raise LedIndexConflict(f"LED index {payload.led_index} is already assigned to {holder.name}.")

    row = Operator(
        line=line,
        name=payload.name,
        employee_id=payload.employee_id,
        station=payload.station,
        image_path=payload.image_path,
        led_index=payload.led_index,
    )
    db.add(row)
    try:
        db.commit()
    except IntegrityError as exc:
        # Concurrent writer took the index between the check and the insert.
        db.rollback()
        raise LedIndexConflict(f"LED index {payload.led_index} is already assigned.") from exc
    db.refresh(row)
    logger.info("Added operator %s (%s) on %s with LED %s", row.name, row.id, line, row.led_index)
    return row


def remove_operator(db: Session, line: str, operator_id: str) -> None:
    row = get_operator(db, line, operator_id)
    led_index = row.led_index
    db.delete(row)
    db.commit()
    logger.info("Removed operator %s on %s; LED %s is free", operator_id, line, led_index)
