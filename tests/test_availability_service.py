from datetime import date

import pytest
from conftest import WEEK_START, week_payload

from clinic_booking.domain.appointments.booking_service import BookingService
from clinic_booking.domain.appointments.schemas import AppointmentCreate
from clinic_booking.domain.scheduling.availability_service import AvailabilityService, apply_bookings, find_day
from clinic_booking.domain.scheduling.repository import ScheduleRepository
from clinic_booking.domain.scheduling.schedule_service import ScheduleService
from clinic_booking.domain.scheduling.schemas import ScheduleCreate
from clinic_booking.exceptions import NotFoundError, ValidationError
from clinic_booking.models import Appointment


def _book(db, patient, doctor, day="2024-06-03", timeslot="09:00-09:30"):
    return BookingService(db).book(
        patient.id, AppointmentCreate(doctorId=doctor.id, appointmentDate=day, timeslot=timeslot)
    )


def test_resolves_declared_slots(db, doctor, schedule):
    slots = AvailabilityService(db).resolve_available_slots(doctor.id, "2024-06-03")
    assert slots == [{"time": "09:00-09:30"}, {"time": "09:30-10:00"}]


def test_closed_day_and_missing_schedule_are_empty(db, doctor, schedule):
    service = AvailabilityService(db)
    assert service.resolve_available_slots(doctor.id, "2024-06-04") == []
    assert service.resolve_available_slots(doctor.id, "2024-06-10") == []


def test_booked_slot_disappears_and_returns_after_cancel(db, doctor, patient, schedule):
    service = AvailabilityService(db)
    appointment = _book(db, patient, doctor)
    assert service.resolve_available_slots(doctor.id, "2024-06-03") == [{"time": "09:30-10:00"}]

    BookingService(db).cancel(appointment.id, patient.id)
    assert service.resolve_available_slots(doctor.id, "2024-06-03") == [
        {"time": "09:00-09:30"},
        {"time": "09:30-10:00"},
    ]


def test_live_appointment_hides_slot_even_when_flag_is_stale(db, doctor, patient, schedule):
    # Appointment written without touching the schedule document
    db.add(Appointment(patient_id=patient.id, doctor_id=doctor.id, appointment_date=date(2024, 6, 3), timeslot="09:30-10:00"))
    db.commit()
    slots = AvailabilityService(db).resolve_available_slots(doctor.id, "2024-06-03")
    assert slots == [{"time": "09:00-09:30"}]


def test_lookup_is_scoped_to_the_week_of_the_date(db, doctor, schedule):
    next_week = date(2024, 6, 10)
    ScheduleService(db).create_schedule(
        ScheduleCreate(
            doctorId=doctor.id,
            weekStartDate=next_week.isoformat(),
            availability=week_payload(next_week, {0: ["14:00-14:30"]}),
        )
    )
    service = AvailabilityService(db)
    assert service.resolve_available_slots(doctor.id, "2024-06-03") == [
        {"time": "09:00-09:30"},
        {"time": "09:30-10:00"},
    ]
    assert service.resolve_available_slots(doctor.id, "2024-06-10") == [{"time": "14:00-14:30"}]


def test_invalid_date_is_a_validation_error(db, doctor, schedule):
    with pytest.raises(ValidationError):
        AvailabilityService(db).resolve_available_slots(doctor.id, "2024-06-31")


def test_patient_lookup_requires_existing_doctor(db, schedule):
    with pytest.raises(NotFoundError):
        AvailabilityService(db).get_doctor_slots(9999, "2024-06-03")


def test_find_day_matches_label_and_date(db, doctor, schedule):
    availability = ScheduleRepository.get_schedule_by_id(db, schedule.id).availability
    assert find_day(availability, WEEK_START)["date"] == "2024-06-03"
    # Same weekday, other week
    assert find_day(availability, date(2024, 6, 10)) is None


def test_apply_bookings_counts_changes(db, doctor, patient, schedule):
    availability = week_payload(WEEK_START)
    document = [
        {
            "day": d["day"],
            "date": d["date"],
            "is_available": d["isAvailable"],
            "time_slots": [
                {"time": s["time"], "is_available": True, "is_booked": False, "patient_id": None}
                for s in d["timeSlots"]
            ],
        }
        for d in availability
    ]
    appointment = Appointment(
        patient_id=patient.id, doctor_id=doctor.id, appointment_date=WEEK_START, timeslot="09:30-10:00"
    )
    assert apply_bookings(document, [appointment]) == 1
    assert document[0]["time_slots"][1] == {
        "time": "09:30-10:00",
        "is_available": True,
        "is_booked": True,
        "patient_id": patient.id,
    }
    assert apply_bookings(document, [appointment]) == 0
