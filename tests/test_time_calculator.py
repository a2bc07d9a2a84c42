from datetime import date, datetime, timedelta

import pytest

from clinic_booking.config import CLINIC_TIMEZONE
from clinic_booking.domain.scheduling import time_calculator
from clinic_booking.exceptions import ValidationError


def test_week_starts_on_monday():
    assert time_calculator.week_start(date(2024, 6, 3)) == date(2024, 6, 3)
    assert time_calculator.week_start(date(2024, 6, 9)) == date(2024, 6, 3)
    assert time_calculator.week_start(date(2024, 6, 10)) == date(2024, 6, 10)


def test_day_labels_follow_weekday():
    assert time_calculator.day_label(date(2024, 6, 3)) == "Thứ 2"
    assert time_calculator.day_label(date(2024, 6, 8)) == "Thứ 7"
    assert time_calculator.day_label(date(2024, 6, 9)) == "Chủ nhật"


def test_week_dates_are_consecutive():
    dates = time_calculator.week_dates(date(2024, 6, 3))
    assert len(dates) == 7
    assert dates[-1] == date(2024, 6, 9)


def test_week_number_uses_iso_calendar():
    assert time_calculator.week_number_and_year(date(2024, 6, 3)) == (23, 2024)
    assert time_calculator.week_number_and_year(date(2024, 12, 30)) == (1, 2025)


def test_parse_date_converts_utc_to_clinic_day():
    # 18:30 UTC on the 2nd is 01:30 on the 3rd in UTC+7
    assert time_calculator.parse_date("2024-06-02T18:30:00Z") == date(2024, 6, 3)
    assert time_calculator.parse_date("2024-06-03") == date(2024, 6, 3)


@pytest.mark.parametrize("value", ["", "2024-13-01", "03/06/2024", None])
def test_parse_date_rejects_garbage(value):
    with pytest.raises(ValidationError):
        time_calculator.parse_date(value)


def test_parse_timeslot():
    start, end = time_calculator.parse_timeslot("09:00-09:30")
    assert (start.hour, start.minute, end.minute) == (9, 0, 30)


@pytest.mark.parametrize("value", ["9:00-09:30", "10:00-09:00", "09:00-09:00", "25:00-26:00", "09:00"])
def test_parse_timeslot_rejects_invalid(value):
    with pytest.raises(ValidationError):
        time_calculator.parse_timeslot(value)


def test_slots_overlap():
    assert not time_calculator.slots_overlap("09:00-09:30", "09:30-10:00")
    assert time_calculator.slots_overlap("09:00-10:00", "09:30-10:30")
    assert time_calculator.slots_overlap("09:00-12:00", "10:00-10:30")


def test_slot_start_is_in_clinic_timezone():
    start = time_calculator.slot_start(date(2024, 6, 3), "09:00-09:30")
    assert start == datetime(2024, 6, 3, 9, 0, tzinfo=CLINIC_TIMEZONE)
    assert start.utcoffset() == timedelta(hours=7)


def test_is_past_week_uses_clinic_today(clock):
    assert time_calculator.is_past_week(date(2024, 5, 20))
    assert not time_calculator.is_past_week(date(2024, 5, 27))
    clock.set(2024, 6, 3, 0, 30)
    assert time_calculator.is_past_week(date(2024, 5, 27))
