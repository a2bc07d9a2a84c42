"""Slot resolution - which of a doctor's declared slots a patient may still book"""

import logging
from datetime import date
from typing import Optional, Union

from sqlalchemy.orm import Session

from ...cache import get_cached_slots, set_cached_slots, slot_generation
from ...exceptions import NotFoundError
from ...models import Schedule
from ..appointments.repository import AppointmentRepository
from . import time_calculator
from .repository import ScheduleRepository

logger = logging.getLogger(__name__)


def find_day(availability: list[dict], day: date) -> Optional[dict]:
    """Day entry of an availability document for a calendar date.

    Matched on both the weekday label and the stored date, so a label that
    disagrees with its date never resolves.
    """
    label = time_calculator.day_label(day)
    iso_day = day.isoformat()
    for entry in availability:
        if entry.get("day") == label and entry.get("date") == iso_day:
            return entry
    return None


def find_slot(day_entry: dict, timeslot: str) -> Optional[dict]:
    for slot in day_entry.get("time_slots", []):
        if slot.get("time") == timeslot:
            return slot
    return None


def iter_booked_slots(availability: list[dict]):
    """Yield (day_entry, slot) for every slot flagged as booked"""
    for entry in availability:
        for slot in entry.get("time_slots", []):
            if slot.get("is_booked"):
                yield entry, slot


def apply_bookings(availability: list[dict], appointments) -> int:
    """Recompute every slot's booked flag and occupant from live appointments.

    Mutates ``availability`` in place and returns how many slots changed.
    Appointments whose day or slot is missing from the document are ignored.
    """
    occupants = {(a.appointment_date.isoformat(), a.timeslot): a.patient_id for a in appointments}
    changed = 0
    for entry in availability:
        for slot in entry.get("time_slots", []):
            patient_id = occupants.get((entry.get("date"), slot.get("time")))
            is_booked = patient_id is not None
            if slot.get("is_booked") != is_booked or slot.get("patient_id") != patient_id:
                slot["is_booked"] = is_booked
                slot["patient_id"] = patient_id
                changed += 1
    return changed


class AvailabilityService:
    """Resolves effective availability: declared slots minus live appointments"""

    def __init__(self, db: Session):
        self.db = db
        self.schedule_repo = ScheduleRepository()
        self.appointment_repo = AppointmentRepository()

    def get_schedule_for_date(self, doctor_id: int, day: date) -> Optional[Schedule]:
        """The schedule of the week containing ``day``"""
        return self.schedule_repo.get_schedule_for_week(
            self.db, doctor_id, time_calculator.week_start(day)
        )

    def resolve_available_slots(self, doctor_id: int, day_value: Union[str, date]) -> list[dict]:
        """Bookable slots of a doctor on a date, as ``[{"time": "HH:MM-HH:MM"}]``.

        A missing schedule or an unavailable day is an empty result, not an
        error: the doctor simply has no hours then.
        """
        day = time_calculator.parse_date(day_value)

        generation = slot_generation(doctor_id)
        cached = get_cached_slots(doctor_id, generation, day)
        if cached is not None:
            return cached

        schedule = self.get_schedule_for_date(doctor_id, day)
        if not schedule:
            logger.info(f"No schedule for doctor {doctor_id} in week of {day.isoformat()}")
            return []

        day_entry = find_day(schedule.availability, day)
        if not day_entry or not day_entry.get("is_available"):
            logger.info(f"Doctor {doctor_id} not working on {day.isoformat()}")
            return []

        booked_times = self.appointment_repo.get_booked_timeslots(self.db, doctor_id, day)

        slots = [
            {"time": slot["time"]}
            for slot in day_entry.get("time_slots", [])
            if not slot.get("is_booked")
            and slot.get("is_available", True)
            and slot["time"] not in booked_times
        ]
        set_cached_slots(doctor_id, generation, day, slots)
        return slots

    def get_doctor_slots(self, doctor_id: int, day_value: Union[str, date]) -> list[dict]:
        """Patient-facing lookup: the doctor must exist"""
        day = time_calculator.parse_date(day_value)
        if not self.schedule_repo.doctor_exists(self.db, doctor_id):
            raise NotFoundError("Doctor not found")
        return self.resolve_available_slots(doctor_id, day)
