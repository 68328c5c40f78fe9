from datetime import date, time

import pytest

from app.core.errors import NotFound
from app.models import AvailabilityWindow, BlackoutRange
from app.services.availability_service import (
    SlotResolution,
    expand_window,
    generate_slots,
    get_calendar_overview,
    is_slot_bookable,
)
from conftest import MONDAY, SUNDAY_BEFORE, TUESDAY, at, make_booking


def test_expand_window_whole_hours() -> None:
    assert expand_window(time(9, 0), time(12, 0)) == [time(9), time(10), time(11)]


def test_expand_window_rounds_start_up_and_drops_partial_tail() -> None:
    assert expand_window(time(9, 30), time(12, 15)) == [time(10), time(11)]


def test_expand_window_shorter_than_an_hour_is_empty() -> None:
    assert expand_window(time(9, 0), time(9, 45)) == []


def test_monday_window_lists_three_slots(db, practitioner) -> None:
    result = generate_slots(db, practitioner.id, MONDAY, now=at(SUNDAY_BEFORE, 12))

    assert result.available is True
    assert result.slots == [time(9), time(10), time(11)]
    assert result.reason is None


def test_booked_slot_is_removed_from_listing(db, practitioner, patient) -> None:
    make_booking(db, patient, practitioner, MONDAY, time(10), status="pending")

    result = generate_slots(db, practitioner.id, MONDAY, now=at(SUNDAY_BEFORE, 12))

    assert result.slots == [time(9), time(11)]


def test_cancelled_booking_frees_the_slot(db, practitioner, patient) -> None:
    make_booking(db, patient, practitioner, MONDAY, time(10), status="cancelled")

    result = generate_slots(db, practitioner.id, MONDAY, now=at(SUNDAY_BEFORE, 12))

    assert result.slots == [time(9), time(10), time(11)]


def test_today_keeps_only_hours_after_current_hour(db, practitioner) -> None:
    result = generate_slots(db, practitioner.id, MONDAY, now=at(MONDAY, 10, 5))

    assert result.slots == [time(11)]


def test_misaligned_window_start_never_offers_a_slot_before_it(db, practitioner) -> None:
    db.add(AvailabilityWindow(practitioner_id=practitioner.id, day_of_week=1, start_time=time(9, 30), end_time=time(12)))
    db.commit()

    result = generate_slots(db, practitioner.id, TUESDAY, now=at(SUNDAY_BEFORE, 12))
    early = is_slot_bookable(db, practitioner.id, TUESDAY, time(9), now=at(SUNDAY_BEFORE, 12))

    assert result.slots == [time(10), time(11)]
    assert not early
    assert early.reason == "outside working hours"


def test_overlapping_windows_are_deduplicated(db, practitioner) -> None:
    db.add(AvailabilityWindow(practitioner_id=practitioner.id, day_of_week=0, start_time=time(11), end_time=time(14)))
    db.commit()

    result = generate_slots(db, practitioner.id, MONDAY, now=at(SUNDAY_BEFORE, 12))

    assert result.slots == [time(9), time(10), time(11), time(12), time(13)]


def test_blackout_closes_the_day(db, practitioner) -> None:
    db.add(BlackoutRange(practitioner_id=practitioner.id, start_date=date(2030, 1, 1), end_date=date(2030, 1, 10)))
    db.commit()

    result = generate_slots(db, practitioner.id, MONDAY, now=at(SUNDAY_BEFORE, 12))

    assert result.available is False
    assert result.slots == []
    assert result.reason == "blackout"


def test_blackout_without_end_date_covers_only_start_date(db, practitioner) -> None:
    db.add(BlackoutRange(practitioner_id=practitioner.id, start_date=MONDAY, end_date=None))
    db.commit()
    next_monday = date(2030, 1, 14)

    assert generate_slots(db, practitioner.id, MONDAY, now=at(SUNDAY_BEFORE, 12)).reason == "blackout"
    assert generate_slots(db, practitioner.id, next_monday, now=at(SUNDAY_BEFORE, 12)).available is True


def test_day_without_window_is_non_working(db, practitioner) -> None:
    result = generate_slots(db, practitioner.id, TUESDAY, now=at(SUNDAY_BEFORE, 12))

    assert result.available is False
    assert result.reason == "non-working day"


def test_past_date_is_not_available(db, practitioner) -> None:
    result = generate_slots(db, practitioner.id, MONDAY, now=at(TUESDAY, 8))

    assert result.available is False
    assert result.reason == "past date"


def test_unknown_practitioner_raises_not_found(db) -> None:
    with pytest.raises(NotFound):
        generate_slots(db, 999, MONDAY, now=at(SUNDAY_BEFORE, 12))


def test_to_dict_formats_slots() -> None:
    payload = SlotResolution(available=True, slots=[time(9), time(11)]).to_dict()

    assert payload == {"available": True, "slots": ["09:00", "11:00"], "reason": None}


@pytest.mark.parametrize(
    ("slot_time", "now_hour", "reason"),
    [
        (time(10, 30), 8, "not on the hour"),
        (time(9), 9, "in the past"),
        (time(13), 8, "outside working hours"),
    ],
)
def test_is_slot_bookable_rejections(db, practitioner, slot_time, now_hour, reason) -> None:
    check = is_slot_bookable(db, practitioner.id, MONDAY, slot_time, now=at(MONDAY, now_hour))

    assert check.bookable is False
    assert check.reason == reason


def test_is_slot_bookable_rejects_already_booked(db, practitioner, patient) -> None:
    make_booking(db, patient, practitioner, MONDAY, time(10))

    check = is_slot_bookable(db, practitioner.id, MONDAY, time(10), now=at(SUNDAY_BEFORE, 12))

    assert not check
    assert check.reason == "already booked"


def test_is_slot_bookable_can_exclude_the_booking_being_moved(db, practitioner, patient) -> None:
    b = make_booking(db, patient, practitioner, MONDAY, time(10))

    check = is_slot_bookable(db, practitioner.id, MONDAY, time(10), exclude_booking_id=b.id, now=at(SUNDAY_BEFORE, 12))

    assert check.bookable is True


def test_is_slot_bookable_rejects_blackout(db, practitioner) -> None:
    db.add(BlackoutRange(practitioner_id=practitioner.id, start_date=MONDAY, end_date=MONDAY))
    db.commit()

    check = is_slot_bookable(db, practitioner.id, MONDAY, time(10), now=at(SUNDAY_BEFORE, 12))

    assert check.reason == "blackout"


def test_calendar_overview_lists_non_working_days_and_blocked_dates(db, practitioner) -> None:
    db.add(BlackoutRange(practitioner_id=practitioner.id, start_date=date(2030, 1, 9), end_date=date(2030, 1, 11)))
    db.add(BlackoutRange(practitioner_id=practitioner.id, start_date=date(2029, 12, 1), end_date=date(2029, 12, 3)))
    db.commit()

    overview = get_calendar_overview(db, practitioner.id, today=SUNDAY_BEFORE)

    assert overview["non_working_days"] == [1, 2, 3, 4, 5, 6]
    assert overview["blocked_dates"] == ["2030-01-09", "2030-01-10", "2030-01-11"]


def test_calendar_overview_clips_ranges_that_started_before_today(db, practitioner) -> None:
    db.add(BlackoutRange(practitioner_id=practitioner.id, start_date=date(2030, 1, 4), end_date=date(2030, 1, 7)))
    db.commit()

    overview = get_calendar_overview(db, practitioner.id, today=SUNDAY_BEFORE)

    assert overview["blocked_dates"] == ["2030-01-06", "2030-01-07"]
