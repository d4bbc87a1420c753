from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from attendance_store.db.session import get_db


def db_session() -> Session:
    return Depends(get_db)  # type: ignore[return-value]
