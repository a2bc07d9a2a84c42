"""Time parsing and week arithmetic in the clinic timezone.

Every day and week boundary is computed in ``config.CLINIC_TIMEZONE``,
never in UTC or the server's local zone: near midnight a naive UTC
computation would move a slot to the neighbouring day.
"""

from datetime import date, datetime, time, timedelta
from typing import Union

from ...config import CLINIC_TIMEZONE
from ...exceptions import ValidationError
from ...shared.validators import TIMESLOT_PATTERN

# Weekday label table, indexed by date.weekday() (Monday == 0).
# Swap this table to change how days are labelled in stored schedules.
DAY_LABELS = ("Thứ 2", "Thứ 3", "Thứ 4", "Thứ 5", "Thứ 6", "Thứ 7", "Chủ nhật")

DAYS_PER_WEEK = 7


def now_local() -> datetime:
    """Current time in the clinic timezone (patched in tests)"""
    return datetime.now(CLINIC_TIMEZONE)


def today_local() -> date:
    return now_local().date()


def parse_date(value: Union[str, date, datetime], field: str = "date") -> date:
    """Parse ``YYYY-MM-DD`` (or an ISO datetime) into a clinic calendar date.

    Aware datetimes are converted to the clinic timezone first, so
    ``2024-06-02T18:30:00Z`` is the 3rd of June in Ho Chi Minh City.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(CLINIC_TIMEZONE)
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Invalid {field}: expected YYYY-MM-DD")

    raw = value.strip()
    try:
        if len(raw) == 10:
            return date.fromisoformat(raw)
        return parse_date(datetime.fromisoformat(raw.replace("Z", "+00:00")), field)
    except ValueError as e:
        raise ValidationError(f"Invalid {field}: expected YYYY-MM-DD") from e


def day_label(day: date) -> str:
    return DAY_LABELS[day.weekday()]


def week_start(day: date) -> date:
    """Monday of the week containing ``day``"""
    return day - timedelta(days=day.weekday())


def week_dates(start: date) -> list[date]:
    return [start + timedelta(days=i) for i in range(DAYS_PER_WEEK)]


def week_number_and_year(start: date) -> tuple[int, int]:
    iso = start.isocalendar()
    return iso[1], iso[0]


def parse_timeslot(value: str) -> tuple[time, time]:
    """Split ``HH:MM-HH:MM`` into (start, end); start must precede end"""
    if not isinstance(value, str) or not TIMESLOT_PATTERN.match(value):
        raise ValidationError(f"Invalid time slot '{value}': expected HH:MM-HH:MM")
    start_raw, end_raw = value.split("-")
    try:
        start = time.fromisoformat(start_raw)
        end = time.fromisoformat(end_raw)
    except ValueError as e:
        raise ValidationError(f"Invalid time slot '{value}': not a clock time") from e
    if start >= end:
        raise ValidationError(f"Invalid time slot '{value}': start must be before end")
    return start, end


def slots_overlap(first: str, second: str) -> bool:
    first_start, first_end = parse_timeslot(first)
    second_start, second_end = parse_timeslot(second)
    return first_start < second_end and second_start < first_end


def slot_start(day: date, timeslot: str) -> datetime:
    """Aware datetime at which ``timeslot`` begins on ``day``"""
    start, _ = parse_timeslot(timeslot)
    return datetime.combine(day, start, tzinfo=CLINIC_TIMEZONE)


def is_past_week(start: date) -> bool:
    return start < week_start(today_local())
