"""Medical history schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import sanitize_text

MAX_RECORD_LENGTH = 5000


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    cleaned = sanitize_text(value, MAX_RECORD_LENGTH)
    if not cleaned:
        raise ValueError("Field cannot be empty")
    return cleaned


class MedicalHistoryCreate(BaseModel):
    appointmentId: int
    diagnosis: str
    treatment: str

    @field_validator("diagnosis", "treatment")
    @classmethod
    def validate_text(cls, v):
        return _clean_text(v)


class MedicalHistoryUpdate(BaseModel):
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None

    @field_validator("diagnosis", "treatment")
    @classmethod
    def validate_text(cls, v):
        return _clean_text(v)


class MedicalHistoryResponse(BaseModel):
    id: int
    appointmentId: int
    patientId: int
    doctorId: int
    patientName: Optional[str] = None
    doctorName: Optional[str] = None
    diagnosis: str
    treatment: str
    date: Optional[datetime] = None
