"""Medical history repository - Database operations for history records"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import MedicalHistory


class MedicalHistoryRepository:
    """Repository for medical history database operations"""

    @staticmethod
    def get_by_id(db: Session, record_id: int) -> Optional[MedicalHistory]:
        return (
            db.query(MedicalHistory)
            .options(joinedload(MedicalHistory.patient), joinedload(MedicalHistory.doctor))
            .filter(MedicalHistory.id == record_id)
            .first()
        )

    @staticmethod
    def get_by_appointment(db: Session, appointment_id: int) -> Optional[MedicalHistory]:
        return db.query(MedicalHistory).filter(MedicalHistory.appointment_id == appointment_id).first()

    @staticmethod
    def list_for_doctor(db: Session, doctor_id: int, patient_id: Optional[int] = None) -> list[MedicalHistory]:
        query = (
            db.query(MedicalHistory)
            .options(joinedload(MedicalHistory.patient))
            .filter(MedicalHistory.doctor_id == doctor_id)
        )
        if patient_id is not None:
            query = query.filter(MedicalHistory.patient_id == patient_id)
        return query.order_by(MedicalHistory.date.desc(), MedicalHistory.id.desc()).all()

    @staticmethod
    def list_for_patient(db: Session, patient_id: int) -> list[MedicalHistory]:
        return (
            db.query(MedicalHistory)
            .options(joinedload(MedicalHistory.doctor))
            .filter(MedicalHistory.patient_id == patient_id)
            .order_by(MedicalHistory.date.desc(), MedicalHistory.id.desc())
            .all()
        )

    @staticmethod
    def add(db: Session, **record_data) -> MedicalHistory:
        record = MedicalHistory(**record_data)
        db.add(record)
        db.flush()
        return record

    @staticmethod
    def delete(db: Session, record: MedicalHistory) -> None:
        db.delete(record)
        db.flush()
