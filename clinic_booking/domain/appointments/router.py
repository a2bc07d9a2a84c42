"""Appointment router - FastAPI endpoints for patients, doctors and admins"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...auth import Principal, get_current_admin, get_current_doctor, get_current_patient
from ...database import get_db
from ...models import Appointment, Doctor, Patient
from ...rate_limiter import create_rate_limiter
from ...shared.responses import success_response
from .booking_service import BookingService
from .schemas import AppointmentCreate, AppointmentResponse, AppointmentStatusUpdate, PersonSummary

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Appointments"])

# 10 bookings / 20 cancellations per patient per hour
rate_limit_booking = create_rate_limiter(limit=10, window_seconds=3600, action="booking")
rate_limit_cancel = create_rate_limiter(limit=20, window_seconds=3600, action="cancellation")


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


def _person(person) -> Optional[PersonSummary]:
    if person is None:
        return None
    return PersonSummary(id=person.id, name=person.name, email=person.email)


def appointment_to_response(
    appointment: Appointment, has_medical_history: Optional[bool] = None
) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        patientId=appointment.patient_id,
        doctorId=appointment.doctor_id,
        appointmentDate=appointment.appointment_date,
        timeslot=appointment.timeslot,
        status=appointment.status,
        notes=appointment.notes or "",
        doctor=_person(appointment.doctor),
        patient=_person(appointment.patient),
        hasMedicalHistory=has_medical_history,
        createdAt=appointment.created_at,
        updatedAt=appointment.updated_at,
    )


# ============================================================================
# PATIENT
# ============================================================================


@router.post("/patient/book-appointment", status_code=status.HTTP_201_CREATED)
async def book_appointment(
    data: AppointmentCreate,
    current_patient: Patient = Depends(get_current_patient),
    service: BookingService = Depends(get_booking_service),
    _: None = Depends(rate_limit_booking),
):
    appointment = service.book(current_patient.id, data)
    return success_response(appointment_to_response(appointment), "Appointment booked")


@router.post("/patient/cancel-appointment/{appointment_id}")
async def cancel_appointment(
    appointment_id: int,
    current_patient: Patient = Depends(get_current_patient),
    service: BookingService = Depends(get_booking_service),
    _: None = Depends(rate_limit_cancel),
):
    appointment = service.cancel(appointment_id, current_patient.id)
    return success_response(appointment_to_response(appointment), "Appointment cancelled")


@router.get("/patient/my-appointment")
async def get_my_appointments(
    current_patient: Patient = Depends(get_current_patient),
    service: BookingService = Depends(get_booking_service),
):
    appointments = service.list_patient_appointments(current_patient.id)
    return success_response([appointment_to_response(a) for a in appointments], "Appointments retrieved")


@router.get("/patient/appointment/{appointment_id}")
async def get_my_appointment(
    appointment_id: int,
    current_patient: Patient = Depends(get_current_patient),
    service: BookingService = Depends(get_booking_service),
):
    appointment = service.get_patient_appointment(appointment_id, current_patient.id)
    return success_response(appointment_to_response(appointment), "Appointment retrieved")


# ============================================================================
# DOCTOR
# ============================================================================


@router.get("/doctor/my-appointments")
async def get_doctor_appointments(
    current_doctor: Doctor = Depends(get_current_doctor),
    service: BookingService = Depends(get_booking_service),
):
    appointments = service.list_doctor_appointments(current_doctor.id)
    return success_response([appointment_to_response(a) for a in appointments], "Appointments retrieved")


@router.get("/doctor/completed-appointments")
async def get_completed_appointments(
    current_doctor: Doctor = Depends(get_current_doctor),
    service: BookingService = Depends(get_booking_service),
):
    """Completed appointments, flagged with whether a medical history was recorded"""
    rows = service.list_completed_appointments(current_doctor.id)
    return success_response(
        [appointment_to_response(a, has_history) for a, has_history in rows],
        "Completed appointments retrieved",
    )


@router.put("/doctor/appointment/{appointment_id}")
async def update_appointment(
    appointment_id: int,
    data: AppointmentStatusUpdate,
    current_doctor: Doctor = Depends(get_current_doctor),
    service: BookingService = Depends(get_booking_service),
):
    appointment = service.update_status(appointment_id, current_doctor.id, data)
    return success_response(appointment_to_response(appointment), "Appointment updated")


@router.delete("/doctor/appointment/{appointment_id}")
async def delete_doctor_appointment(
    appointment_id: int,
    current_doctor: Doctor = Depends(get_current_doctor),
    service: BookingService = Depends(get_booking_service),
):
    result = service.delete_appointment(appointment_id, doctor_id=current_doctor.id)
    return success_response(None, result["message"])


# ============================================================================
# ADMIN
# ============================================================================


@router.get("/admin/appointments")
async def list_appointments(
    admin: Principal = Depends(get_current_admin),
    service: BookingService = Depends(get_booking_service),
):
    appointments = service.list_all_appointments()
    return success_response([appointment_to_response(a) for a in appointments], "Appointments retrieved")


@router.get("/admin/appointment/{appointment_id}")
async def get_appointment(
    appointment_id: int,
    admin: Principal = Depends(get_current_admin),
    service: BookingService = Depends(get_booking_service),
):
    return success_response(appointment_to_response(service.get_appointment(appointment_id)), "Appointment retrieved")


@router.delete("/admin/appointment/{appointment_id}")
async def delete_appointment(
    appointment_id: int,
    admin: Principal = Depends(get_current_admin),
    service: BookingService = Depends(get_booking_service),
):
    result = service.delete_appointment(appointment_id)
    return success_response(None, result["message"])
