"""
FastAPI app entrypoint.

Booking API plus the in-process lifecycle scheduler (reconciliation, reminders, follow-ups).
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from app.api.deps import get_dispatcher, shutdown_dispatcher
from app.api.routes import availability, bookings, payments, practitioners
from app.config import settings
from app.core.errors import MSG_INTERNAL_ERROR, STATUS_INTERNAL_ERROR, BookingError, booking_error_to_http
from app.db.session import SessionLocal
from app.scheduler.booking_scheduler import BookingScheduler

logging.basicConfig(
    level=getattr(logging, (settings.log_level or "INFO").upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = None
    if settings.scheduler_enabled:
        scheduler = BookingScheduler(SessionLocal, get_dispatcher())
        scheduler.start()
    else:
        logger.info("SCHEDULER_ENABLED=false; lifecycle scans will not run in this process")
    app.state.scheduler = scheduler
    logger.info("Backend ready (timezone=%s)", settings.app_timezone)
    yield
    if scheduler is not None:
        scheduler.stop()
    shutdown_dispatcher()


app = FastAPI(title="Therapy Booking", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for the production frontend
_cors_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_extra = os.getenv("CORS_ORIGINS", "")
if _cors_extra:
    _cors_origins.extend(o.strip() for o in _cors_extra.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BookingError)
async def handle_booking_error(request: Request, exc: BookingError) -> JSONResponse:
    http = booking_error_to_http(exc)
    return JSONResponse(status_code=http.status_code, content=http.detail)


@app.exception_handler(SQLAlchemyError)
async def handle_db_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=STATUS_INTERNAL_ERROR,
        content={"detail": MSG_INTERNAL_ERROR, "code": "internal_error"},
    )


app.include_router(availability.router, prefix="/availability", tags=["availability"])
app.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
app.include_router(practitioners.router, prefix="/practitioners", tags=["practitioners"])
app.include_router(payments.router, prefix="/payments", tags=["payments"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/", include_in_schema=False)
def root():
    """Root: point to API docs and health."""
    return {"message": "Therapy Booking API", "docs": "/docs", "health": "/health"}
