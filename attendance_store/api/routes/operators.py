from __future__ import annotations

from fastapi import APIRouter, HTTPException, Response, status
from sqlalchemy.orm import Session

from attendance_store.api.deps import db_session
from attendance_store.schemas.operator import OperatorCreate, OperatorResponse
from attendance_store.services import roster

router = APIRouter(prefix="/operators", tags=["operators"])


@router.get("/{line}", response_model=list[OperatorResponse])
def list_operators(line: str, db: Session = db_session()):
    return roster.list_operators(db, line)


@router.post("/{line}", response_model=OperatorResponse, status_code=status.HTTP_201_CREATED)
def create_operator(line: str, payload: OperatorCreate, db: Session = db_session()):
    try:
        return roster.add_operator(db, line, payload)
    except roster.LedIndexConflict as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc


@router.get("/{line}/led-indexes", response_model=list[int])
def available_led_indexes(line: str, db: Session = db_session()):
    return roster.available_led_indexes(db, line)


@router.delete("/{line}/{operator_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_operator(line: str, operator_id: str, db: Session = db_session()):
    try:
        roster.remove_operator(db, line, operator_id)
    except roster.UnknownOperator as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
