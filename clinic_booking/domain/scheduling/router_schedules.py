"""Schedule router - admin schedule editor, doctor week view, patient slot lookup"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...auth import Principal, get_current_admin, get_current_doctor, get_current_patient
from ...database import get_db
from ...models import Doctor, Patient, Schedule
from ...shared.responses import success_response
from ..appointments.booking_service import BookingService
from .availability_service import AvailabilityService
from .schedule_service import ScheduleService
from .schemas import (
    AvailableSlot,
    DayAvailabilityResponse,
    DoctorSummary,
    ScheduleCreate,
    ScheduleResponse,
    ScheduleUpdate,
    TimeSlotResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Schedules"])


def get_schedule_service(db: Session = Depends(get_db)) -> ScheduleService:
    """Dependency injection for ScheduleService"""
    return ScheduleService(db)


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db)


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    return BookingService(db)


def schedule_to_response(schedule: Schedule) -> ScheduleResponse:
    return ScheduleResponse(
        id=schedule.id,
        doctorId=schedule.doctor_id,
        doctor=(
            DoctorSummary(id=schedule.doctor.id, name=schedule.doctor.name, email=schedule.doctor.email)
            if schedule.doctor
            else None
        ),
        weekStartDate=schedule.week_start_date,
        weekNumber=schedule.week_number,
        year=schedule.year,
        availability=[
            DayAvailabilityResponse(
                day=entry["day"],
                date=entry["date"],
                isAvailable=entry["is_available"],
                timeSlots=[
                    TimeSlotResponse(
                        time=slot["time"],
                        isAvailable=slot.get("is_available", True),
                        isBooked=slot.get("is_booked", False),
                        patientId=slot.get("patient_id"),
                    )
                    for slot in entry.get("time_slots", [])
                ],
            )
            for entry in schedule.availability
        ],
        version=schedule.version,
        createdAt=schedule.created_at,
        updatedAt=schedule.updated_at,
    )


# ============================================================================
# PATIENT - SLOT LOOKUP
# ============================================================================


@router.get("/patient/doctor/schedule/{doctor_id}")
async def get_available_slots(
    doctor_id: int,
    date: str = Query(..., description="YYYY-MM-DD"),
    current_patient: Patient = Depends(get_current_patient),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Slots of a doctor a patient can still book on a date"""
    slots = service.get_doctor_slots(doctor_id, date)
    return success_response(
        [AvailableSlot(**slot) for slot in slots],
        "Available slots retrieved" if slots else "No available slots for this date",
    )


# ============================================================================
# DOCTOR - OWN WEEK
# ============================================================================


@router.get("/doctor/my-schedule")
async def get_my_schedule(
    date: Optional[str] = Query(None, description="Any day of the wanted week, default today"),
    current_doctor: Doctor = Depends(get_current_doctor),
    service: ScheduleService = Depends(get_schedule_service),
):
    schedule = service.get_doctor_schedule(current_doctor.id, date)
    return success_response(schedule_to_response(schedule), "Schedule retrieved")


# ============================================================================
# ADMIN - SCHEDULE EDITOR
# ============================================================================


@router.get("/admin/schedules")
async def list_schedules(
    weekStartDate: Optional[str] = Query(None),
    admin: Principal = Depends(get_current_admin),
    service: ScheduleService = Depends(get_schedule_service),
):
    schedules = service.list_schedules(weekStartDate)
    return success_response([schedule_to_response(s) for s in schedules], "Schedules retrieved")


@router.get("/admin/schedules/{schedule_id}")
async def get_schedule(
    schedule_id: int,
    admin: Principal = Depends(get_current_admin),
    service: ScheduleService = Depends(get_schedule_service),
):
    return success_response(schedule_to_response(service.get_schedule(schedule_id)), "Schedule retrieved")


@router.post("/admin/schedules", status_code=status.HTTP_201_CREATED)
async def create_schedule(
    data: ScheduleCreate,
    admin: Principal = Depends(get_current_admin),
    service: ScheduleService = Depends(get_schedule_service),
):
    schedule = service.create_schedule(data)
    return success_response(schedule_to_response(schedule), "Schedule created")


@router.put("/admin/schedules/{schedule_id}")
async def update_schedule(
    schedule_id: int,
    data: ScheduleUpdate,
    admin: Principal = Depends(get_current_admin),
    service: ScheduleService = Depends(get_schedule_service),
):
    schedule = service.update_schedule(schedule_id, data)
    return success_response(schedule_to_response(schedule), "Schedule updated")


@router.delete("/admin/schedules/{schedule_id}")
async def delete_schedule(
    schedule_id: int,
    admin: Principal = Depends(get_current_admin),
    service: ScheduleService = Depends(get_schedule_service),
):
    result = service.delete_schedule(schedule_id)
    return success_response(None, result["message"])


@router.post("/admin/schedules/{schedule_id}/reconcile")
async def reconcile_schedule(
    schedule_id: int,
    admin: Principal = Depends(get_current_admin),
    service: BookingService = Depends(get_booking_service),
):
    """Rebuild the booked flags of a week from its live appointments"""
    schedule, changed = service.reconcile_schedule(schedule_id)
    return success_response(
        {"schedule": schedule_to_response(schedule), "changedSlots": changed},
        f"Schedule reconciled, {changed} slot(s) changed",
    )
