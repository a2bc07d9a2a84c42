from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func

from .database import Base
from .exceptions import StorageError

# Partial predicate shared by the PostgreSQL and SQLite dialects
ACTIVE_APPOINTMENT_PREDICATE = text("status != 'cancelled'")


class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    schedules = relationship("Schedule", back_populates="doctor")
    appointments = relationship("Appointment", back_populates="doctor")


class Patient(Base):
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    appointments = relationship("Appointment", back_populates="patient")


class Schedule(Base):
    """One doctor's declared availability for one calendar week.

    ``availability`` is the embedded 7-day document::

        [{"day": "Thứ 2", "date": "2024-06-03", "is_available": true,
          "time_slots": [{"time": "09:00-09:30", "is_available": true,
                          "is_booked": false, "patient_id": null}]}, ...]

    Every write bumps ``version``; SQLAlchemy checks it on UPDATE so two
    sessions modifying the same week cannot silently overwrite each other.
    """

    __tablename__ = "schedules"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    week_start_date = Column(Date, nullable=False)  # Monday of the week, clinic timezone
    week_number = Column(Integer, nullable=False)  # ISO week number
    year = Column(Integer, nullable=False)  # ISO year
    availability = Column(JSON, nullable=False, default=list)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    doctor = relationship("Doctor", back_populates="schedules")

    __table_args__ = (
        UniqueConstraint("doctor_id", "week_start_date", name="uq_schedules_doctor_week"),
        Index("ix_schedules_doctor_year_week", "doctor_id", "year", "week_number"),
    )
    __mapper_args__ = {"version_id_col": version}

    @validates("availability")
    def validate_availability(self, key, availability):
        """A slot is booked exactly when it names an occupant"""
        for entry in availability or []:
            for slot in entry.get("time_slots", []):
                if bool(slot.get("is_booked")) != (slot.get("patient_id") is not None):
                    raise StorageError(
                        f"Inconsistent slot {entry.get('date')} {slot.get('time')}: "
                        f"is_booked={slot.get('is_booked')} patient_id={slot.get('patient_id')}"
                    )
        return availability


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    appointment_date = Column(Date, nullable=False)  # calendar date in clinic timezone
    timeslot = Column(String(11), nullable=False)  # HH:MM-HH:MM
    status = Column(String(20), nullable=False, default="pending")  # pending, completed, cancelled
    notes = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    patient = relationship("Patient", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")
    reviews = relationship("Review", back_populates="appointment")
    medical_history = relationship("MedicalHistory", back_populates="appointment", uselist=False)

    __table_args__ = (
        # The only hard guarantee against double booking: at most one live
        # appointment per doctor/date/slot. Cancelled rows free the slot.
        Index(
            "uq_appointments_active_slot",
            "doctor_id",
            "appointment_date",
            "timeslot",
            unique=True,
            postgresql_where=ACTIVE_APPOINTMENT_PREDICATE,
            sqlite_where=ACTIVE_APPOINTMENT_PREDICATE,
        ),
        Index("ix_appointments_doctor_date", "doctor_id", "appointment_date"),
    )


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)  # 1-5
    review = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    appointment = relationship("Appointment", back_populates="reviews")


class MedicalHistory(Base):
    __tablename__ = "medical_histories"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False, unique=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    diagnosis = Column(Text, nullable=False)
    treatment = Column(Text, nullable=False)
    date = Column(DateTime, server_default=func.now())

    appointment = relationship("Appointment", back_populates="medical_history")
    patient = relationship("Patient")
    doctor = relationship("Doctor")
