"""
Completed-payment hook. The payment provider's webhook handler (outside this service)
forwards the paid checkout's metadata here.

With booking_id the existing pending booking is confirmed; otherwise a confirmed booking
is created from the metadata.
"""
import logging
from datetime import date, time
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.deps import get_dispatcher
from app.db.session import get_db
from app.services import booking_service
from app.services.notifications import NotificationDispatcher

router = APIRouter()
logger = logging.getLogger(__name__)


class PaymentCompletedBody(BaseModel):
    patient_id: int
    practitioner_id: int
    slot_date: date = Field(..., alias="date")
    slot_time: time = Field(..., alias="time")
    motive: str | None = Field(None, max_length=2000)
    booking_id: int | None = None


@router.post("/completed")
def payment_completed(
    body: PaymentCompletedBody,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    if body.booking_id is not None:
        b = booking_service.confirm_booking(db, body.booking_id, patient_id=body.patient_id)
    else:
        b = booking_service.create_paid_booking(
            db,
            body.patient_id,
            body.practitioner_id,
            body.slot_date,
            body.slot_time,
            motive=body.motive,
            dispatcher=dispatcher,
        )
    logger.info("Payment completed for booking %s (patient=%s)", b.id, body.patient_id)
    return {"booking_id": b.id, "status": b.status}
