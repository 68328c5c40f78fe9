"""Shared FastAPI dependencies."""
from fastapi import Header, HTTPException

from app.config import settings
from app.services.notifications import NotificationDispatcher, build_dispatcher

_dispatcher: NotificationDispatcher | None = None


def get_dispatcher() -> NotificationDispatcher:
    """Process-wide dispatcher built from settings on first use. Tests override this dependency."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = build_dispatcher(settings)
    return _dispatcher


def shutdown_dispatcher() -> None:
    global _dispatcher
    if _dispatcher is not None:
        _dispatcher.shutdown(wait=True)
        _dispatcher = None


def patient_id_header(x_patient_id: str | None = Header(None, alias="X-Patient-Id")) -> int:
    raw = (x_patient_id or "").strip()
    if not raw.isdigit():
        raise HTTPException(status_code=401, detail={"detail": "X-Patient-Id header required", "code": "unauthenticated"})
    return int(raw)


def practitioner_id_header(x_practitioner_id: str | None = Header(None, alias="X-Practitioner-Id")) -> int:
    raw = (x_practitioner_id or "").strip()
    if not raw.isdigit():
        raise HTTPException(status_code=401, detail={"detail": "X-Practitioner-Id header required", "code": "unauthenticated"})
    return int(raw)
