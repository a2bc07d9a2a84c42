"""Booking service - the single entry point that books, cancels and closes appointments.

A booking changes two records: the appointment row and the booked flag of
its slot in the week's schedule document. Both are written in one
transaction. The schedule row is versioned, so a concurrent write to the
same week fails the flush with ``StaleDataError`` and the attempt is
retried from a fresh read. The partial unique index on active
appointments is the last word: an ``IntegrityError`` there means the slot
was taken and nothing of the attempt is committed.
"""

import copy
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ...cache import invalidate_doctor_slots
from ...config import BOOKING_MAX_RETRIES, CANCELLATION_CUTOFF_MINUTES
from ...exceptions import (
    AuthorizationError,
    ConflictError,
    DayUnavailable,
    NotFoundError,
    ScheduleNotFound,
    StorageError,
    ValidationError,
)
from ...models import Appointment, Schedule
from ..scheduling import time_calculator
from ..scheduling.availability_service import apply_bookings, find_day, find_slot
from ..scheduling.repository import ScheduleRepository
from .repository import AppointmentRepository
from .schemas import AppointmentCreate, AppointmentStatusUpdate

logger = logging.getLogger(__name__)


class BookingService:
    """Service layer for appointment booking and its schedule side effects"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AppointmentRepository()
        self.schedule_repo = ScheduleRepository()

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    def book(self, patient_id: int, data: AppointmentCreate) -> Appointment:
        """Book ``data.timeslot`` of a doctor for a patient"""
        day = time_calculator.parse_date(data.appointmentDate, "appointmentDate")
        time_calculator.parse_timeslot(data.timeslot)

        now = time_calculator.now_local()
        if day < now.date():
            raise ValidationError("Cannot book an appointment in the past")
        if time_calculator.slot_start(day, data.timeslot) <= now:
            raise ValidationError("This time slot has already started")

        if not self.schedule_repo.doctor_exists(self.db, data.doctorId):
            raise NotFoundError("Doctor not found")
        if not self.repo.patient_exists(self.db, patient_id):
            raise NotFoundError("Patient not found")

        logger.info(
            f"Booking doctor {data.doctorId} on {day.isoformat()} {data.timeslot} for patient {patient_id}"
        )

        for attempt in range(1, BOOKING_MAX_RETRIES + 1):
            try:
                appointment = self._attempt_booking(patient_id, data.doctorId, day, data.timeslot, data.notes)
                self.db.commit()
            except StaleDataError:
                self.db.rollback()
                logger.warning(
                    f"Schedule of doctor {data.doctorId} changed during booking "
                    f"(attempt {attempt}/{BOOKING_MAX_RETRIES}), retrying"
                )
                continue
            except IntegrityError as e:
                self.db.rollback()
                logger.warning(
                    f"Slot {day.isoformat()} {data.timeslot} of doctor {data.doctorId} taken concurrently: {e}"
                )
                raise ConflictError("This time slot is already booked") from e
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Failed to book doctor {data.doctorId} for patient {patient_id}: {e}")
                raise StorageError("Failed to book appointment") from e
            except Exception:
                self.db.rollback()
                raise

            invalidate_doctor_slots(data.doctorId)
            logger.info(f"Appointment {appointment.id} booked for patient {patient_id}")
            return self.repo.get_appointment_by_id(self.db, appointment.id)

        logger.error(f"Booking for doctor {data.doctorId} gave up after {BOOKING_MAX_RETRIES} attempts")
        raise ConflictError("The schedule is busy, please try again")

    def _attempt_booking(self, patient_id: int, doctor_id: int, day, timeslot: str, notes: str) -> Appointment:
        """Validate against the current schedule and stage both writes (no commit)"""
        schedule = self.schedule_repo.get_schedule_for_week(self.db, doctor_id, time_calculator.week_start(day))
        if not schedule:
            raise ScheduleNotFound("Doctor has no schedule for this week")

        day_entry = find_day(schedule.availability, day)
        if not day_entry or not day_entry.get("is_available"):
            raise DayUnavailable("Doctor is not available on this day")

        slot = find_slot(day_entry, timeslot)
        if not slot or not slot.get("is_available", True):
            raise DayUnavailable("This time slot is not offered on this day")
        if slot.get("is_booked"):
            raise ConflictError("This time slot is already booked")

        if self.repo.find_active_appointment(self.db, doctor_id, day, timeslot):
            raise ConflictError("This time slot is already booked")

        availability = copy.deepcopy(schedule.availability)
        booked_slot = find_slot(find_day(availability, day), timeslot)
        booked_slot["is_booked"] = True
        booked_slot["patient_id"] = patient_id
        self.schedule_repo.replace_availability(self.db, schedule, availability)

        return self.repo.add_appointment(
            self.db,
            patient_id=patient_id,
            doctor_id=doctor_id,
            appointment_date=day,
            timeslot=timeslot,
            status="pending",
            notes=notes or "",
        )

    # ------------------------------------------------------------------
    # Cancellation and status changes
    # ------------------------------------------------------------------

    def cancel(self, appointment_id: int, patient_id: int) -> Appointment:
        """Patient cancels their own pending appointment"""
        appointment = self._get_or_404(appointment_id)
        if appointment.patient_id != patient_id:
            raise AuthorizationError("You can only cancel your own appointments")
        self._ensure_pending(appointment)

        starts_at = time_calculator.slot_start(appointment.appointment_date, appointment.timeslot)
        now = time_calculator.now_local()
        if starts_at <= now:
            raise ValidationError("Cannot cancel an appointment that has already started")
        if starts_at - now < timedelta(minutes=CANCELLATION_CUTOFF_MINUTES):
            raise ValidationError(
                f"Appointments cannot be cancelled less than {CANCELLATION_CUTOFF_MINUTES} minutes before they start"
            )

        self._set_status(appointment, "cancelled")
        logger.info(f"Appointment {appointment_id} cancelled by patient {patient_id}")
        self._release_slot(appointment)
        invalidate_doctor_slots(appointment.doctor_id)
        return self._get_or_404(appointment_id)

    def update_status(self, appointment_id: int, doctor_id: int, data: AppointmentStatusUpdate) -> Appointment:
        """Doctor completes or cancels one of their appointments, or edits its notes"""
        appointment = self._get_or_404(appointment_id)
        if appointment.doctor_id != doctor_id:
            raise AuthorizationError("You can only update your own appointments")

        if data.status is not None:
            if data.status == "pending":
                raise ValidationError("Status can only be set to completed or cancelled")
            self._ensure_pending(appointment)

        if data.notes is not None:
            appointment.notes = data.notes
        new_status = data.status or appointment.status
        self._set_status(appointment, new_status)
        logger.info(f"Appointment {appointment_id} updated by doctor {doctor_id}, status {new_status}")

        if data.status == "cancelled":
            self._release_slot(appointment)
            invalidate_doctor_slots(appointment.doctor_id)
        return self._get_or_404(appointment_id)

    def delete_appointment(self, appointment_id: int, doctor_id: Optional[int] = None) -> dict:
        """Admin (any) or doctor (own) removes an appointment without review or history"""
        appointment = self._get_or_404(appointment_id)
        if doctor_id is not None and appointment.doctor_id != doctor_id:
            raise AuthorizationError("You can only delete your own appointments")

        if self.repo.get_review(self.db, appointment_id):
            raise ConflictError("Cannot delete an appointment that has been reviewed")
        if self.repo.appointment_ids_with_history(self.db, [appointment_id]):
            raise ConflictError("Cannot delete an appointment that has a medical history record")

        was_live = appointment.status != "cancelled"
        snapshot = (appointment.doctor_id, appointment.appointment_date, appointment.timeslot)
        try:
            self.repo.delete_appointment(self.db, appointment)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to delete appointment {appointment_id}: {e}")
            raise StorageError("Failed to delete appointment") from e

        logger.info(f"Appointment {appointment_id} deleted")
        if was_live:
            self._sync_slot(*snapshot)
        invalidate_doctor_slots(snapshot[0])
        return {"message": "Appointment deleted"}

    def _ensure_pending(self, appointment: Appointment) -> None:
        if appointment.status != "pending":
            logger.warning(f"Rejected transition of appointment {appointment.id} from {appointment.status}")
            raise ConflictError(f"Appointment is already {appointment.status}")

    def _set_status(self, appointment: Appointment, status: str) -> None:
        try:
            appointment.status = status
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to set appointment {appointment.id} to {status}: {e}")
            raise StorageError("Failed to update appointment") from e

    def _release_slot(self, appointment: Appointment) -> bool:
        return self._sync_slot(appointment.doctor_id, appointment.appointment_date, appointment.timeslot)

    def _sync_slot(self, doctor_id: int, day, timeslot: str) -> bool:
        """Re-derive one schedule slot from the appointment store after its booking ended.

        Runs after the appointment change is committed. Failures are logged
        and reported as False; the appointment change stands regardless.
        """
        for attempt in range(1, BOOKING_MAX_RETRIES + 1):
            schedule = self.schedule_repo.get_schedule_for_week(
                self.db, doctor_id, time_calculator.week_start(day)
            )
            day_entry = find_day(schedule.availability, day) if schedule else None
            slot = find_slot(day_entry, timeslot) if day_entry else None
            if slot is None:
                logger.warning(
                    f"No schedule slot for doctor {doctor_id} on {day.isoformat()} {timeslot}, skipping cleanup"
                )
                return False

            occupant = self.repo.find_active_appointment(self.db, doctor_id, day, timeslot)
            patient_id = occupant.patient_id if occupant else None
            if slot.get("is_booked") == (occupant is not None) and slot.get("patient_id") == patient_id:
                return True

            availability = copy.deepcopy(schedule.availability)
            target = find_slot(find_day(availability, day), timeslot)
            target["is_booked"] = occupant is not None
            target["patient_id"] = patient_id
            try:
                self.schedule_repo.replace_availability(self.db, schedule, availability)
                self.db.commit()
                return True
            except StaleDataError:
                self.db.rollback()
                logger.warning(f"Schedule {schedule.id} changed during slot cleanup (attempt {attempt}), retrying")
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Failed to free slot {day.isoformat()} {timeslot} of doctor {doctor_id}: {e}")
                return False

        logger.error(f"Gave up freeing slot {day.isoformat()} {timeslot} of doctor {doctor_id}")
        return False

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _get_or_404(self, appointment_id: int) -> Appointment:
        appointment = self.repo.get_appointment_by_id(self.db, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment not found")
        return appointment

    def get_appointment(self, appointment_id: int) -> Appointment:
        return self._get_or_404(appointment_id)

    def get_patient_appointment(self, appointment_id: int, patient_id: int) -> Appointment:
        appointment = self._get_or_404(appointment_id)
        if appointment.patient_id != patient_id:
            raise AuthorizationError("You can only view your own appointments")
        return appointment

    def list_patient_appointments(self, patient_id: int) -> list[Appointment]:
        return self.repo.list_for_patient(self.db, patient_id)

    def list_doctor_appointments(self, doctor_id: int) -> list[Appointment]:
        return self.repo.list_for_doctor(self.db, doctor_id)

    def list_completed_appointments(self, doctor_id: int) -> list[tuple[Appointment, bool]]:
        """Completed appointments of a doctor paired with whether a history record exists"""
        appointments = self.repo.list_for_doctor(self.db, doctor_id, status="completed")
        with_history = self.repo.appointment_ids_with_history(self.db, [a.id for a in appointments])
        return [(a, a.id in with_history) for a in appointments]

    def list_all_appointments(self) -> list[Appointment]:
        return self.repo.list_all(self.db)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reconcile_schedule(self, schedule_id: int) -> tuple[Schedule, int]:
        """Recompute every booked flag of a week from its live appointments"""
        schedule = self.schedule_repo.get_schedule_by_id(self.db, schedule_id)
        if not schedule:
            raise NotFoundError("Schedule not found")

        start = schedule.week_start_date
        appointments = self.repo.get_active_in_range(
            self.db, schedule.doctor_id, start, start + timedelta(days=time_calculator.DAYS_PER_WEEK - 1)
        )
        availability = copy.deepcopy(schedule.availability)
        changed = apply_bookings(availability, appointments)
        if not changed:
            return schedule, 0

        try:
            self.schedule_repo.replace_availability(self.db, schedule, availability)
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            raise ConflictError("Schedule was modified concurrently, reload and try again") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to reconcile schedule {schedule_id}: {e}")
            raise StorageError("Failed to reconcile schedule") from e

        invalidate_doctor_slots(schedule.doctor_id)
        logger.info(f"Schedule {schedule_id} reconciled, {changed} slot(s) changed")
        return self.schedule_repo.get_schedule_by_id(self.db, schedule_id), changed

    def reconcile_all(self) -> int:
        """Reconcile every stored schedule; returns the number of slots changed"""
        total = 0
        for schedule in self.schedule_repo.list_schedules(self.db):
            _, changed = self.reconcile_schedule(schedule.id)
            total += changed
        return total
