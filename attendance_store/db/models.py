from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


def _new_id() -> str:
    return uuid.uuid4().hex


class Operator(Base):
    __tablename__ = "operators"
    # One LED per operator on a line; NULLs do not collide.
    __table_args__ = (UniqueConstraint("line", "led_index", name="uq_operators_line_led_index"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    line: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(120))
    employee_id: Mapped[str] = mapped_column(String(64), index=True)
    station: Mapped[str] = mapped_column(String(32))
    image_path: Mapped[str] = mapped_column(String(255))
    led_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Removing an operator detaches its history rather than deleting it.
    attendance: Mapped[list["AttendanceEntry"]] = relationship(back_populates="operator")


class AttendanceEntry(Base):
    __tablename__ = "attendance"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    line: Mapped[str] = mapped_column(String(64), index=True)
    operator_id: Mapped[str | None] = mapped_column(
        ForeignKey("operators.id", ondelete="SET NULL"), nullable=True, index=True
    )
    operator_name: Mapped[str] = mapped_column(String(120))
    employee_id: Mapped[str] = mapped_column(String(64))
    station: Mapped[str] = mapped_column(String(32))
    date: Mapped[str] = mapped_column(String(10), index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    operator: Mapped[Operator | None] = relationship(back_populates="attendance")


class FailedAttempt(Base):
    __tablename__ = "failed_attempts"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    line: Mapped[str] = mapped_column(String(64), index=True)
    station: Mapped[str | None] = mapped_column(String(32), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))
