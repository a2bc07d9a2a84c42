"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_timeslot_format


class TimeSlotIn(BaseModel):
    time: str
    isAvailable: bool = True
    isBooked: bool = False
    patientId: Optional[int] = None

    @field_validator("time")
    @classmethod
    def validate_time(cls, v):
        return validate_timeslot_format(v)


class DayAvailabilityIn(BaseModel):
    """One day of a submitted week; ``date`` is optional and recomputed server-side"""

    day: str
    date: Optional[str] = None
    isAvailable: bool
    timeSlots: list[TimeSlotIn] = Field(default_factory=list)


class ScheduleCreate(BaseModel):
    doctorId: int
    weekStartDate: str
    availability: list[DayAvailabilityIn]


class ScheduleUpdate(BaseModel):
    weekStartDate: str
    availability: list[DayAvailabilityIn]


class TimeSlotResponse(BaseModel):
    time: str
    isAvailable: bool
    isBooked: bool
    patientId: Optional[int] = None


class DayAvailabilityResponse(BaseModel):
    day: str
    date: date
    isAvailable: bool
    timeSlots: list[TimeSlotResponse]


class DoctorSummary(BaseModel):
    id: int
    name: str
    email: str


class ScheduleResponse(BaseModel):
    id: int
    doctorId: int
    doctor: Optional[DoctorSummary] = None
    weekStartDate: date
    weekNumber: int
    year: int
    availability: list[DayAvailabilityResponse]
    version: int
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class AvailableSlot(BaseModel):
    time: str
