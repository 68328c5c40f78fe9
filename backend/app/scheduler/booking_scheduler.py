"""
In-process scheduler for booking lifecycle scans.

Reconciliation and reminders run every SCAN_INTERVAL_SECONDS; follow-ups run daily at
FOLLOWUP_HOUR (APP_TIMEZONE). Each scan opens its own session, takes a job lease and
releases it when done, so a second app instance skips instead of double-sending. A failing
scan is logged and rolled back; the next tick runs normally. Scans that send renew the lease
before every send and stop if another instance has taken it over.
"""
import logging
import os
import socket
import time
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.core.clock import local_now
from app.core.constants import FOLLOWUP_JOB_ID, RECONCILIATION_JOB_ID, REMINDER_JOB_ID
from app.services import lifecycle_jobs
from app.services.job_lease import LeaseLost, acquire_lease, release_lease, renew_lease

logger = logging.getLogger(__name__)


def default_owner() -> str:
    return f"{socket.gethostname()}:{os.getpid()}"


class BookingScheduler:
    def __init__(
        self,
        session_factory,
        dispatcher,
        scan_interval_seconds: int | None = None,
        followup_hour: int | None = None,
        lease_seconds: int | None = None,
        owner: str | None = None,
    ):
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self.scan_interval_seconds = scan_interval_seconds or settings.scan_interval_seconds
        self.followup_hour = settings.followup_hour if followup_hour is None else followup_hour
        self.lease_seconds = lease_seconds or settings.job_lease_seconds
        self.owner = owner or default_owner()
        self._scheduler: BackgroundScheduler | None = None

    # --- lifecycle ---

    def start(self) -> None:
        if self._scheduler is not None:
            return
        scheduler = BackgroundScheduler(timezone=ZoneInfo(settings.app_timezone))
        job_defaults = {"max_instances": 1, "coalesce": True}
        scheduler.add_job(
            self.run_reconciliation, "interval", seconds=self.scan_interval_seconds,
            id=RECONCILIATION_JOB_ID, **job_defaults,
        )
        scheduler.add_job(
            self.run_reminders, "interval", seconds=self.scan_interval_seconds,
            id=REMINDER_JOB_ID, **job_defaults,
        )
        scheduler.add_job(
            self.run_followups, "cron", hour=self.followup_hour, minute=0,
            id=FOLLOWUP_JOB_ID, **job_defaults,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info(
            "Booking scheduler started (scan every %ss, follow-ups daily at %02d:00, owner=%s)",
            self.scan_interval_seconds, self.followup_hour, self.owner,
        )

    def stop(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Booking scheduler stopped")

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    # --- job bodies (also callable directly) ---

    def run_reconciliation(self, now: datetime | None = None) -> int | None:
        return self._run_leased(
            RECONCILIATION_JOB_ID,
            lambda db, at, heartbeat: lifecycle_jobs.run_reconciliation(db, at),
            now,
        )

    def run_reminders(self, now: datetime | None = None) -> int | None:
        return self._run_leased(
            REMINDER_JOB_ID,
            lambda db, at, heartbeat: lifecycle_jobs.run_reminders(db, self._dispatcher, at, heartbeat=heartbeat),
            now,
        )

    def run_followups(self, now: datetime | None = None) -> int | None:
        return self._run_leased(
            FOLLOWUP_JOB_ID,
            lambda db, at, heartbeat: lifecycle_jobs.run_followups(db, self._dispatcher, at, heartbeat=heartbeat),
            now,
        )

    def _run_leased(self, job_id: str, body, now: datetime | None) -> int | None:
        """Run body(db, now, heartbeat) under the job lease. None when skipped (lease held), lost or failed."""
        now = now or local_now()
        db = self._session_factory()
        leased = False
        started = time.monotonic()

        def heartbeat() -> None:
            # Measured from the tick's `now`
            at = now + timedelta(seconds=time.monotonic() - started)
            if not renew_lease(db, job_id, self.owner, at, self.lease_seconds):
                raise LeaseLost(job_id, self.owner)

        try:
            leased = acquire_lease(db, job_id, self.owner, now, self.lease_seconds)
            if not leased:
                logger.debug("%s: lease not acquired; skipping tick", job_id)
                return None
            count = body(db, now, heartbeat)
            if count:
                logger.info("%s: acted on %s booking(s)", job_id, count)
            return count
        except LeaseLost as e:
            logger.warning("%s: %s; stopping this tick", job_id, e)
            db.rollback()
            return None
        except Exception as e:
            logger.exception("%s failed: %s", job_id, e)
            db.rollback()
            return None
        finally:
            if leased:
                try:
                    release_lease(db, job_id, self.owner)
                except SQLAlchemyError as e:
                    logger.warning("%s: could not release lease: %s", job_id, e)
                    db.rollback()
            db.close()
