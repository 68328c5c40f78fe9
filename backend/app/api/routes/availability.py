"""Open slots per practitioner and date, plus the month-view calendar overview."""
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services.availability_service import generate_slots, get_calendar_overview

router = APIRouter()


@router.get("/{practitioner_id}")
def get_availability(
    practitioner_id: int,
    day: date = Query(..., alias="date"),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    return generate_slots(db, practitioner_id, day).to_dict()


@router.get("/{practitioner_id}/calendar")
def get_calendar(practitioner_id: int, db: Session = Depends(get_db)) -> dict[str, Any]:
    """Weekdays with no working window (0=Monday) and individual blocked dates."""
    return get_calendar_overview(db, practitioner_id)
