#!/usr/bin/env python3
"""
Drop all scheduler job leases (e.g. after a crashed instance left one behind and you do
not want to wait for it to expire). Booking markers are untouched.
Run from backend: python scripts/clear_job_leases.py
"""
import sys
from pathlib import Path

# backend/scripts/ -> backend/
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import text

from app.db.session import engine
from app.db.tables import SCHEDULER_TABLE_NAMES


def main():
    with engine.connect() as conn:
        for table in SCHEDULER_TABLE_NAMES:
            n = conn.execute(text(f"DELETE FROM {table}")).rowcount
            print(f"{table}: removed {n} row(s)")
        conn.commit()
    print("Done. Next scheduler tick will take fresh leases.")


if __name__ == "__main__":
    main()
