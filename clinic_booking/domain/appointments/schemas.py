"""Appointment domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import clean_notes, validate_status, validate_timeslot_format


class AppointmentCreate(BaseModel):
    """Schema for a patient booking a slot"""

    doctorId: int
    appointmentDate: str
    timeslot: str
    notes: Optional[str] = ""

    @field_validator("timeslot")
    @classmethod
    def validate_timeslot(cls, v):
        return validate_timeslot_format(v)

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v):
        return clean_notes(v)


class AppointmentStatusUpdate(BaseModel):
    """Schema for a doctor updating one of their appointments"""

    status: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        if v is None:
            return v
        return validate_status(v)

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v):
        if v is None:
            return v
        return clean_notes(v)


class PersonSummary(BaseModel):
    id: int
    name: str
    email: str


class AppointmentResponse(BaseModel):
    """Schema for appointment response"""

    id: int
    patientId: int
    doctorId: int
    appointmentDate: date
    timeslot: str
    status: str
    notes: str = ""
    doctor: Optional[PersonSummary] = None
    patient: Optional[PersonSummary] = None
    hasMedicalHistory: Optional[bool] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
