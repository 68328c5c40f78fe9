"""
Exclusive, expiring claim on a scheduler scan so several app instances do not run the same
scan at once. A lease is taken when no row exists, when the holder's lease has expired, or
when the caller already holds it. Long scans renew it between units of work.
"""
import logging
from datetime import datetime, timedelta

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.job_lease import JobLease

logger = logging.getLogger(__name__)


class LeaseLost(Exception):
    """The caller no longer holds the lease it is working under."""

    def __init__(self, job_id: str, owner: str):
        super().__init__(f"Lease {job_id} is no longer held by {owner}")
        self.job_id = job_id
        self.owner = owner


def acquire_lease(db: Session, job_id: str, owner: str, now: datetime, ttl_seconds: int) -> bool:
    expires_at = now + timedelta(seconds=ttl_seconds)
    taken = (
        db.query(JobLease)
        .filter(
            JobLease.job_id == job_id,
            or_(JobLease.expires_at <= now, JobLease.owner == owner),
        )
        .update(
            {JobLease.owner: owner, JobLease.acquired_at: now, JobLease.expires_at: expires_at},
            synchronize_session=False,
        )
    )
    if taken:
        db.commit()
        return True
    if db.get(JobLease, job_id) is not None:
        db.rollback()
        logger.debug("Lease %s held by another owner; skipping", job_id)
        return False
    db.add(JobLease(job_id=job_id, owner=owner, acquired_at=now, expires_at=expires_at))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.debug("Lease %s claimed concurrently; skipping", job_id)
        return False
    return True


def release_lease(db: Session, job_id: str, owner: str) -> None:
    db.query(JobLease).filter(JobLease.job_id == job_id, JobLease.owner == owner).delete(synchronize_session=False)
    db.commit()


def renew_lease(db: Session, job_id: str, owner: str, now: datetime, ttl_seconds: int) -> bool:
    """Push the expiry to now + ttl. False when the lease expired and another owner took it."""
    renewed = (
        db.query(JobLease)
        .filter(JobLease.job_id == job_id, JobLease.owner == owner)
        .update({JobLease.expires_at: now + timedelta(seconds=ttl_seconds)}, synchronize_session=False)
    )
    db.commit()
    return renewed == 1
