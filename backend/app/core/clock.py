"""
Wall-clock helpers. Slots, lead times and scans use naive local time in APP_TIMEZONE.
"""
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from app.config import settings
from app.core.constants import SLOT_MINUTES


def local_now() -> datetime:
    return datetime.now(ZoneInfo(settings.app_timezone)).replace(tzinfo=None, microsecond=0)


def slot_start(slot_date: date, slot_time: time) -> datetime:
    return datetime.combine(slot_date, slot_time)


def slot_end(slot_date: date, slot_time: time) -> datetime:
    return slot_start(slot_date, slot_time) + timedelta(minutes=SLOT_MINUTES)


def hours_until(slot_date: date, slot_time: time, now: datetime) -> float:
    return (slot_start(slot_date, slot_time) - now).total_seconds() / 3600
