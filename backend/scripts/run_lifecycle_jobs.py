#!/usr/bin/env python3
"""
Run the booking lifecycle scans once: reconciliation (missed), reminders, follow-ups.
For cron/ops when the in-process scheduler is disabled (SCHEDULER_ENABLED=false).
Run from backend: python scripts/run_lifecycle_jobs.py [reconciliation|reminders|followups ...]
"""
import logging
import sys
from pathlib import Path

backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from app.config import settings
from app.db.session import SessionLocal
from app.scheduler.booking_scheduler import BookingScheduler
from app.services.notifications import build_dispatcher

SCANS = ("reconciliation", "reminders", "followups")


def main(argv: list[str]) -> int:
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
    selected = argv or list(SCANS)
    unknown = [name for name in selected if name not in SCANS]
    if unknown:
        print(f"Unknown scan(s): {', '.join(unknown)}. Choose from: {', '.join(SCANS)}", file=sys.stderr)
        return 2
    dispatcher = build_dispatcher(settings)
    scheduler = BookingScheduler(SessionLocal, dispatcher)
    try:
        for name in selected:
            result = getattr(scheduler, f"run_{name}")()
            if result is None:
                print(f"{name}: skipped (lease held elsewhere) or failed; see log")
            else:
                print(f"{name}: acted on {result} booking(s)")
    finally:
        dispatcher.shutdown(wait=True)
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
