"""Practitioner schedule management: weekly windows and blackout (vacation) ranges."""
from datetime import date, time
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services import practitioner_schedule_service as schedule

router = APIRouter()


class WindowBody(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)
    start_time: time
    end_time: time


class BlackoutBody(BaseModel):
    start_date: date
    end_date: date | None = None
    reason: str | None = Field(None, max_length=500)


def _window_dict(w) -> dict[str, Any]:
    return {
        "id": w.id,
        "day_of_week": w.day_of_week,
        "start_time": w.start_time.strftime("%H:%M"),
        "end_time": w.end_time.strftime("%H:%M"),
    }


def _blackout_dict(r) -> dict[str, Any]:
    return {
        "id": r.id,
        "start_date": r.start_date.isoformat(),
        "end_date": (r.end_date or r.start_date).isoformat(),
        "reason": r.reason,
    }


@router.get("/{practitioner_id}/windows")
def list_windows(practitioner_id: int, db: Session = Depends(get_db)) -> dict[str, Any]:
    return {"windows": [_window_dict(w) for w in schedule.list_windows(db, practitioner_id)]}


@router.post("/{practitioner_id}/windows", status_code=201)
def add_window(practitioner_id: int, body: WindowBody, db: Session = Depends(get_db)) -> dict[str, Any]:
    w = schedule.add_window(db, practitioner_id, body.day_of_week, body.start_time, body.end_time)
    return _window_dict(w)


@router.delete("/{practitioner_id}/windows/{window_id}")
def delete_window(practitioner_id: int, window_id: int, db: Session = Depends(get_db)) -> dict[str, Any]:
    schedule.delete_window(db, practitioner_id, window_id)
    return {"ok": True}


@router.get("/{practitioner_id}/blackouts")
def list_blackouts(practitioner_id: int, db: Session = Depends(get_db)) -> dict[str, Any]:
    return {"blackouts": [_blackout_dict(r) for r in schedule.list_blackouts(db, practitioner_id)]}


@router.post("/{practitioner_id}/blackouts", status_code=201)
def add_blackout(practitioner_id: int, body: BlackoutBody, db: Session = Depends(get_db)) -> dict[str, Any]:
    r = schedule.add_blackout(db, practitioner_id, body.start_date, body.end_date, body.reason)
    return _blackout_dict(r)


@router.delete("/{practitioner_id}/blackouts/{blackout_id}")
def delete_blackout(practitioner_id: int, blackout_id: int, db: Session = Depends(get_db)) -> dict[str, Any]:
    schedule.delete_blackout(db, practitioner_id, blackout_id)
    return {"ok": True}
