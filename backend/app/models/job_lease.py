"""Lease row so only one process runs a given scheduler scan at a time."""
from sqlalchemy import Column, DateTime, String

from app.db.base import Base


class JobLease(Base):
    __tablename__ = "job_leases"

    job_id = Column(String(64), primary_key=True)
    owner = Column(String(128), nullable=False)
    acquired_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)
