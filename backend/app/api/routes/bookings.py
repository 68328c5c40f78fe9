"""
Patient-facing booking API.

The patient is identified by the X-Patient-Id header. Create, reschedule and cancel return
as soon as the transition is committed; notifications go out in the background.
Session notes belong to the booking's practitioner (X-Practitioner-Id header).
"""
import logging
from datetime import date, time
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.deps import get_dispatcher, patient_id_header, practitioner_id_header
from app.db.session import get_db
from app.services import booking_service
from app.services.notifications import NotificationDispatcher

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateBookingBody(BaseModel):
    practitioner_id: int
    slot_date: date = Field(..., alias="date")
    slot_time: time = Field(..., alias="time")
    note: str | None = Field(None, max_length=2000)
    motive: str | None = Field(None, max_length=2000)


class RescheduleBody(BaseModel):
    slot_date: date = Field(..., alias="date")
    slot_time: time = Field(..., alias="time")


class JoinBody(BaseModel):
    party: str


class NoteBody(BaseModel):
    text: str = Field("", max_length=20000)


@router.post("", status_code=201)
def create_booking(
    body: CreateBookingBody,
    db: Session = Depends(get_db),
    patient_id: int = Depends(patient_id_header),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    b = booking_service.create_booking(
        db,
        patient_id,
        body.practitioner_id,
        body.slot_date,
        body.slot_time,
        note=body.note,
        motive=body.motive,
        dispatcher=dispatcher,
    )
    return {"booking_id": b.id, "status": b.status}


@router.get("")
def list_bookings(
    patient_id: int | None = Query(None),
    practitioner_id: int | None = Query(None),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    rows = booking_service.list_bookings(db, patient_id=patient_id, practitioner_id=practitioner_id)
    return {"bookings": [booking_service.booking_to_dict(b) for b in rows]}


@router.get("/{booking_id}")
def get_booking(booking_id: int, db: Session = Depends(get_db)) -> dict[str, Any]:
    return booking_service.booking_to_dict(booking_service.get_booking(db, booking_id))


@router.post("/{booking_id}/reschedule")
def reschedule_booking(
    booking_id: int,
    body: RescheduleBody,
    db: Session = Depends(get_db),
    patient_id: int = Depends(patient_id_header),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    b = booking_service.reschedule_booking(
        db, booking_id, body.slot_date, body.slot_time, patient_id=patient_id, dispatcher=dispatcher
    )
    return booking_service.booking_to_dict(b)


@router.post("/{booking_id}/cancel")
def cancel_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    patient_id: int = Depends(patient_id_header),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    b = booking_service.cancel_booking(db, booking_id, patient_id=patient_id, dispatcher=dispatcher)
    return {"booking_id": b.id, "status": b.status}


@router.post("/{booking_id}/join")
def join_session(booking_id: int, body: JoinBody, db: Session = Depends(get_db)) -> dict[str, Any]:
    status = booking_service.register_join(db, booking_id, body.party)
    return {"booking_id": booking_id, "status": status}


@router.get("/{booking_id}/note")
def get_note(
    booking_id: int,
    db: Session = Depends(get_db),
    practitioner_id: int = Depends(practitioner_id_header),
) -> dict[str, Any]:
    return {"booking_id": booking_id, "text": booking_service.get_booking_note(db, booking_id, practitioner_id)}


@router.put("/{booking_id}/note")
def put_note(
    booking_id: int,
    body: NoteBody,
    db: Session = Depends(get_db),
    practitioner_id: int = Depends(practitioner_id_header),
) -> dict[str, Any]:
    text = booking_service.update_booking_note(db, booking_id, practitioner_id, body.text)
    return {"booking_id": booking_id, "text": text}
