"""Schedule repository - Database operations for weekly schedules"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session, joinedload
from sqlalchemy.orm.attributes import flag_modified

from ...models import Doctor, Schedule


class ScheduleRepository:
    """Repository for schedule database operations.

    Methods that write only flush; the calling service owns the transaction.
    """

    @staticmethod
    def doctor_exists(db: Session, doctor_id: int) -> bool:
        return db.query(Doctor.id).filter(Doctor.id == doctor_id).first() is not None

    @staticmethod
    def get_schedule_by_id(db: Session, schedule_id: int) -> Optional[Schedule]:
        return (
            db.query(Schedule)
            .options(joinedload(Schedule.doctor))
            .filter(Schedule.id == schedule_id)
            .first()
        )

    @staticmethod
    def get_schedule_for_week(db: Session, doctor_id: int, week_start_date: date) -> Optional[Schedule]:
        """Get the schedule of one doctor for the week starting on ``week_start_date``"""
        return (
            db.query(Schedule)
            .filter(Schedule.doctor_id == doctor_id, Schedule.week_start_date == week_start_date)
            .first()
        )

    @staticmethod
    def list_schedules(db: Session, week_start_date: Optional[date] = None) -> list[Schedule]:
        query = db.query(Schedule).options(joinedload(Schedule.doctor))
        if week_start_date:
            query = query.filter(Schedule.week_start_date == week_start_date)
        return query.order_by(Schedule.week_start_date.desc(), Schedule.created_at.desc()).all()

    @staticmethod
    def add_schedule(db: Session, **schedule_data) -> Schedule:
        schedule = Schedule(**schedule_data)
        db.add(schedule)
        db.flush()
        return schedule

    @staticmethod
    def replace_availability(db: Session, schedule: Schedule, availability: list[dict]) -> Schedule:
        """Store a new availability document; bumps the version on flush"""
        schedule.availability = availability
        flag_modified(schedule, "availability")
        db.flush()
        return schedule

    @staticmethod
    def delete_schedule(db: Session, schedule: Schedule) -> None:
        db.delete(schedule)
        db.flush()
