"""Appointment repository - Database operations for appointments"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Appointment, MedicalHistory, Patient, Review


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def patient_exists(db: Session, patient_id: int) -> bool:
        return db.query(Patient.id).filter(Patient.id == patient_id).first() is not None

    @staticmethod
    def get_appointment_by_id(db: Session, appointment_id: int) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.doctor), joinedload(Appointment.patient))
            .filter(Appointment.id == appointment_id)
            .first()
        )

    @staticmethod
    def find_active_appointment(
        db: Session, doctor_id: int, appointment_date: date, timeslot: str
    ) -> Optional[Appointment]:
        """Non-cancelled appointment occupying doctor/date/slot, if any"""
        return (
            db.query(Appointment)
            .filter(
                Appointment.doctor_id == doctor_id,
                Appointment.appointment_date == appointment_date,
                Appointment.timeslot == timeslot,
                Appointment.status != "cancelled",
            )
            .first()
        )

    @staticmethod
    def get_booked_timeslots(db: Session, doctor_id: int, appointment_date: date) -> set[str]:
        rows = (
            db.query(Appointment.timeslot)
            .filter(
                Appointment.doctor_id == doctor_id,
                Appointment.appointment_date == appointment_date,
                Appointment.status != "cancelled",
            )
            .all()
        )
        return {row[0] for row in rows}

    @staticmethod
    def get_active_in_range(
        db: Session,
        doctor_id: int,
        start_date: date,
        end_date: date,
        timeslots: Optional[set[str]] = None,
    ) -> list[Appointment]:
        """Non-cancelled appointments of a doctor between two dates (inclusive)"""
        query = db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_date >= start_date,
            Appointment.appointment_date <= end_date,
            Appointment.status != "cancelled",
        )
        if timeslots is not None:
            query = query.filter(Appointment.timeslot.in_(timeslots))
        return query.order_by(Appointment.appointment_date, Appointment.timeslot).all()

    @staticmethod
    def list_for_patient(db: Session, patient_id: int) -> list[Appointment]:
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.doctor))
            .filter(Appointment.patient_id == patient_id)
            .order_by(Appointment.appointment_date.desc(), Appointment.timeslot.desc())
            .all()
        )

    @staticmethod
    def list_for_doctor(db: Session, doctor_id: int, status: Optional[str] = None) -> list[Appointment]:
        query = (
            db.query(Appointment)
            .options(joinedload(Appointment.patient))
            .filter(Appointment.doctor_id == doctor_id)
        )
        if status:
            query = query.filter(Appointment.status == status)
        return query.order_by(Appointment.appointment_date, Appointment.timeslot).all()

    @staticmethod
    def list_all(db: Session) -> list[Appointment]:
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.doctor), joinedload(Appointment.patient))
            .order_by(Appointment.created_at.desc(), Appointment.id.desc())
            .all()
        )

    @staticmethod
    def add_appointment(db: Session, **appointment_data) -> Appointment:
        appointment = Appointment(**appointment_data)
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def delete_appointment(db: Session, appointment: Appointment) -> None:
        db.delete(appointment)
        db.flush()

    @staticmethod
    def get_review(db: Session, appointment_id: int) -> Optional[Review]:
        return db.query(Review).filter(Review.appointment_id == appointment_id).first()

    @staticmethod
    def appointment_ids_with_history(db: Session, appointment_ids: list[int]) -> set[int]:
        if not appointment_ids:
            return set()
        rows = (
            db.query(MedicalHistory.appointment_id)
            .filter(MedicalHistory.appointment_id.in_(appointment_ids))
            .all()
        )
        return {row[0] for row in rows}
