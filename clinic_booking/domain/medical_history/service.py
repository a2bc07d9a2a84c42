"""Medical history service - records may only follow a completed appointment"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...exceptions import AuthorizationError, ConflictError, NotFoundError, StorageError
from ...models import MedicalHistory
from ..appointments.repository import AppointmentRepository
from .repository import MedicalHistoryRepository
from .schemas import MedicalHistoryCreate, MedicalHistoryUpdate

logger = logging.getLogger(__name__)


class MedicalHistoryService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = MedicalHistoryRepository()
        self.appointment_repo = AppointmentRepository()

    def create(self, doctor_id: int, data: MedicalHistoryCreate) -> MedicalHistory:
        """One record per completed appointment, written by its own doctor"""
        appointment = self.appointment_repo.get_appointment_by_id(self.db, data.appointmentId)
        if not appointment:
            raise NotFoundError("Appointment not found")
        if appointment.doctor_id != doctor_id:
            raise AuthorizationError("You can only record history for your own appointments")
        if appointment.status != "completed":
            raise ConflictError("Medical history can only be added to a completed appointment")
        if self.repo.get_by_appointment(self.db, appointment.id):
            raise ConflictError("This appointment already has a medical history record")

        try:
            record = self.repo.add(
                self.db,
                appointment_id=appointment.id,
                patient_id=appointment.patient_id,
                doctor_id=doctor_id,
                diagnosis=data.diagnosis,
                treatment=data.treatment,
            )
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("This appointment already has a medical history record") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create medical history for appointment {appointment.id}: {e}")
            raise StorageError("Failed to create medical history") from e

        logger.info(f"Medical history {record.id} created for appointment {appointment.id}")
        return self.repo.get_by_id(self.db, record.id)

    def list_for_doctor(self, doctor_id: int, patient_id: Optional[int] = None) -> list[MedicalHistory]:
        return self.repo.list_for_doctor(self.db, doctor_id, patient_id)

    def list_for_patient(self, patient_id: int) -> list[MedicalHistory]:
        return self.repo.list_for_patient(self.db, patient_id)

    def _get_own(self, record_id: int, doctor_id: int) -> MedicalHistory:
        record = self.repo.get_by_id(self.db, record_id)
        if not record:
            raise NotFoundError("Medical history not found")
        if record.doctor_id != doctor_id:
            raise AuthorizationError("You can only modify your own records")
        return record

    def update(self, record_id: int, doctor_id: int, data: MedicalHistoryUpdate) -> MedicalHistory:
        record = self._get_own(record_id, doctor_id)
        if data.diagnosis is not None:
            record.diagnosis = data.diagnosis
        if data.treatment is not None:
            record.treatment = data.treatment
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to update medical history {record_id}: {e}")
            raise StorageError("Failed to update medical history") from e
        return self.repo.get_by_id(self.db, record_id)

    def delete(self, record_id: int, doctor_id: int) -> dict:
        record = self._get_own(record_id, doctor_id)
        try:
            self.repo.delete(self.db, record)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to delete medical history {record_id}: {e}")
            raise StorageError("Failed to delete medical history") from e
        logger.info(f"Medical history {record_id} deleted by doctor {doctor_id}")
        return {"message": "Medical history deleted"}
