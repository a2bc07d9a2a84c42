"""Schedule service - validation and writes of weekly schedules"""

import copy
import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ...cache import invalidate_doctor_slots
from ...exceptions import ConflictError, NotFoundError, StorageError, ValidationError
from ...models import Schedule
from ..appointments.repository import AppointmentRepository
from . import time_calculator
from .availability_service import apply_bookings, find_slot, iter_booked_slots
from .repository import ScheduleRepository
from .schemas import DayAvailabilityIn, ScheduleCreate, ScheduleUpdate

logger = logging.getLogger(__name__)


def _without_bookings(day_entry: dict) -> dict:
    kept = copy.deepcopy(day_entry)
    for slot in kept.get("time_slots", []):
        slot["is_booked"] = False
        slot["patient_id"] = None
    return kept


class ScheduleService:
    """Service layer for the weekly schedule editor"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ScheduleRepository()
        self.appointment_repo = AppointmentRepository()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_schedule(self, schedule_id: int) -> Schedule:
        schedule = self.repo.get_schedule_by_id(self.db, schedule_id)
        if not schedule:
            raise NotFoundError("Schedule not found")
        return schedule

    def list_schedules(self, week_start_date: Optional[str] = None) -> list[Schedule]:
        """All schedules, optionally only those of the week containing ``week_start_date``"""
        start = None
        if week_start_date:
            start = time_calculator.week_start(
                time_calculator.parse_date(week_start_date, "weekStartDate")
            )
        return self.repo.list_schedules(self.db, start)

    def get_doctor_schedule(self, doctor_id: int, day_value: Optional[str] = None) -> Schedule:
        """Schedule of a doctor for the week containing ``day_value`` (default: today)"""
        day = time_calculator.parse_date(day_value) if day_value else time_calculator.today_local()
        schedule = self.repo.get_schedule_for_week(self.db, doctor_id, time_calculator.week_start(day))
        if not schedule:
            raise NotFoundError("No schedule found for this week")
        return schedule

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _normalize_week(self, week_start_value: str) -> date:
        start = time_calculator.week_start(time_calculator.parse_date(week_start_value, "weekStartDate"))
        if time_calculator.is_past_week(start):
            raise ValidationError("Cannot create or modify a schedule for a past week")
        return start

    def _build_availability(
        self, start: date, days: list[DayAvailabilityIn], stored: Optional[list[dict]] = None
    ) -> list[dict]:
        """Validate a submitted week and return the storable document.

        ``day`` and ``date`` are always recomputed from ``start``; submitted
        values are only checked against them. Booking flags are reset here
        and derived from the appointment store afterwards.

        Days before today are frozen: a day present in ``stored`` keeps its
        stored hours whatever is submitted for it, and a past day that was
        not open before cannot be opened.
        """
        if len(days) != time_calculator.DAYS_PER_WEEK:
            raise ValidationError("Availability must contain exactly 7 days")

        today = time_calculator.today_local()
        stored_by_date = {entry.get("date"): entry for entry in (stored or [])}
        availability = []
        for index, (day_date, submitted) in enumerate(zip(time_calculator.week_dates(start), days)):
            label = time_calculator.day_label(day_date)
            if submitted.date is not None:
                submitted_date = time_calculator.parse_date(submitted.date, f"availability[{index}].date")
                if submitted_date != day_date:
                    raise ValidationError(
                        f"availability[{index}].date must be {day_date.isoformat()}"
                    )
            if submitted.day != label:
                raise ValidationError(
                    f"availability[{index}].day '{submitted.day}' does not match {day_date.isoformat()} ({label})"
                )
            if not submitted.isAvailable and submitted.timeSlots:
                raise ValidationError(f"{label} is unavailable but has time slots")
            if day_date < today:
                previous = stored_by_date.get(day_date.isoformat())
                if submitted.isAvailable and not (previous and previous.get("is_available")):
                    raise ValidationError(f"Cannot open {label} ({day_date.isoformat()}): the day has passed")
                if previous is not None:
                    availability.append(_without_bookings(previous))
                    continue

            seen: list[str] = []
            slots = []
            for ts in submitted.timeSlots:
                time_calculator.parse_timeslot(ts.time)
                if ts.time in seen:
                    raise ValidationError(f"Duplicate time slot {ts.time} on {label}")
                overlapping = next((s for s in seen if time_calculator.slots_overlap(s, ts.time)), None)
                if overlapping:
                    raise ValidationError(f"Time slot {ts.time} overlaps {overlapping} on {label}")
                seen.append(ts.time)
                slots.append(
                    {"time": ts.time, "is_available": ts.isAvailable, "is_booked": False, "patient_id": None}
                )

            availability.append(
                {
                    "day": label,
                    "date": day_date.isoformat(),
                    "is_available": submitted.isAvailable,
                    "time_slots": sorted(slots, key=lambda s: s["time"]),
                }
            )
        return availability

    def _find_conflicts(
        self, availability: list[dict], submitted: list[DayAvailabilityIn], appointments
    ) -> list[dict]:
        """Live appointments the new week would no longer represent as booked.

        An appointment conflicts when its day is closed, its slot is gone or
        unavailable, or the submitted slot is explicitly unbooked or assigned
        to another patient. Days before today keep their stored hours and
        are not checked.
        """
        today = time_calculator.today_local()
        conflicts: dict[str, dict] = {}
        by_date = {entry["date"]: (entry, days) for entry, days in zip(availability, submitted)}
        for appt in appointments:
            if appt.appointment_date < today:
                continue
            iso_day = appt.appointment_date.isoformat()
            entry, submitted_day = by_date.get(iso_day, (None, None))
            reason = None
            if entry is None:
                reason = "outside the schedule week"
            elif not entry["is_available"]:
                reason = "day closed"
            else:
                slot = find_slot(entry, appt.timeslot)
                submitted_slot = next((ts for ts in submitted_day.timeSlots if ts.time == appt.timeslot), None)
                if slot is None:
                    reason = "slot removed"
                elif not slot["is_available"]:
                    reason = "slot disabled"
                elif not submitted_slot.isBooked:
                    reason = "slot unbooked"
                elif submitted_slot.patientId is not None and submitted_slot.patientId != appt.patient_id:
                    reason = "slot reassigned"
            if reason:
                day_conflict = conflicts.setdefault(
                    iso_day,
                    {
                        "day": time_calculator.day_label(appt.appointment_date),
                        "date": iso_day,
                        "appointments": [],
                    },
                )
                day_conflict["appointments"].append(
                    {
                        "appointmentId": appt.id,
                        "timeslot": appt.timeslot,
                        "patientId": appt.patient_id,
                        "reason": reason,
                    }
                )
        return list(conflicts.values())

    def _live_appointments_in_week(self, doctor_id: int, start: date):
        return self.appointment_repo.get_active_in_range(
            self.db, doctor_id, start, start + timedelta(days=time_calculator.DAYS_PER_WEEK - 1)
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_schedule(self, data: ScheduleCreate) -> Schedule:
        """Create a doctor's week; one schedule per doctor per week"""
        logger.info(f"Creating schedule for doctor {data.doctorId}, week of {data.weekStartDate}")

        if not self.repo.doctor_exists(self.db, data.doctorId):
            raise NotFoundError("Doctor not found")

        start = self._normalize_week(data.weekStartDate)
        if self.repo.get_schedule_for_week(self.db, data.doctorId, start):
            raise ConflictError("A schedule already exists for this doctor and week")

        availability = self._build_availability(start, data.availability)
        apply_bookings(availability, self._live_appointments_in_week(data.doctorId, start))
        week_number, year = time_calculator.week_number_and_year(start)

        try:
            schedule = self.repo.add_schedule(
                self.db,
                doctor_id=data.doctorId,
                week_start_date=start,
                week_number=week_number,
                year=year,
                availability=availability,
            )
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Duplicate schedule for doctor {data.doctorId}, week {start}: {e}")
            raise ConflictError("A schedule already exists for this doctor and week") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create schedule for doctor {data.doctorId}: {e}")
            raise StorageError("Failed to create schedule") from e

        invalidate_doctor_slots(data.doctorId)
        logger.info(f"Schedule {schedule.id} created for doctor {data.doctorId}")
        return self.get_schedule(schedule.id)

    def update_schedule(self, schedule_id: int, data: ScheduleUpdate) -> Schedule:
        """Replace a week's availability without orphaning booked slots"""
        schedule = self.get_schedule(schedule_id)
        logger.info(f"Updating schedule {schedule_id} (doctor {schedule.doctor_id})")

        if time_calculator.is_past_week(schedule.week_start_date):
            raise ValidationError("Cannot create or modify a schedule for a past week")
        start = self._normalize_week(data.weekStartDate)
        availability = self._build_availability(start, data.availability, stored=schedule.availability)

        if start != schedule.week_start_date:
            other = self.repo.get_schedule_for_week(self.db, schedule.doctor_id, start)
            if other and other.id != schedule.id:
                raise ConflictError("A schedule already exists for this doctor and week")
            stranded = self._live_appointments_in_week(schedule.doctor_id, schedule.week_start_date)
            if stranded:
                raise ConflictError(
                    "Cannot move the schedule: appointments exist in its current week",
                    conflicts=[
                        {
                            "appointmentId": a.id,
                            "date": a.appointment_date.isoformat(),
                            "timeslot": a.timeslot,
                            "patientId": a.patient_id,
                        }
                        for a in stranded
                    ],
                )

        appointments = self._live_appointments_in_week(schedule.doctor_id, start)
        conflicts = self._find_conflicts(availability, data.availability, appointments)
        if conflicts:
            logger.warning(f"Schedule {schedule_id} update rejected, conflicting appointments: {conflicts}")
            raise ConflictError("Cannot update schedule: it conflicts with existing appointments", conflicts=conflicts)

        apply_bookings(availability, appointments)
        week_number, year = time_calculator.week_number_and_year(start)

        try:
            schedule.week_start_date = start
            schedule.week_number = week_number
            schedule.year = year
            self.repo.replace_availability(self.db, schedule, availability)
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            logger.warning(f"Schedule {schedule_id} modified concurrently during update")
            raise ConflictError("Schedule was modified concurrently, reload and try again") from e
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("A schedule already exists for this doctor and week") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to update schedule {schedule_id}: {e}")
            raise StorageError("Failed to update schedule") from e

        invalidate_doctor_slots(schedule.doctor_id)
        logger.info(f"Schedule {schedule_id} updated")
        return self.get_schedule(schedule_id)

    def delete_schedule(self, schedule_id: int) -> dict:
        """Delete a week that has no booked slot and no live appointment"""
        schedule = self.get_schedule(schedule_id)

        if time_calculator.is_past_week(schedule.week_start_date):
            raise ValidationError("Cannot delete a schedule for a past week")

        if next(iter_booked_slots(schedule.availability), None):
            raise ConflictError("Cannot delete schedule: it has booked time slots")

        if self._live_appointments_in_week(schedule.doctor_id, schedule.week_start_date):
            raise ConflictError("Cannot delete schedule: appointments exist in this week")

        doctor_id = schedule.doctor_id
        try:
            self.repo.delete_schedule(self.db, schedule)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to delete schedule {schedule_id}: {e}")
            raise StorageError("Failed to delete schedule") from e

        invalidate_doctor_slots(doctor_id)
        logger.info(f"Schedule {schedule_id} deleted")
        return {"message": "Schedule deleted"}
