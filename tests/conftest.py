import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SLOT_CACHE_ENABLED"] = "false"
os.environ["CLINIC_TIMEZONE"] = "Asia/Ho_Chi_Minh"

from datetime import date, datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from clinic_booking.config import CLINIC_TIMEZONE  # noqa: E402
from clinic_booking.database import Base, build_engine, get_db  # noqa: E402
from clinic_booking.domain.scheduling import time_calculator  # noqa: E402
from clinic_booking.domain.scheduling.schedule_service import ScheduleService  # noqa: E402
from clinic_booking.domain.scheduling.schemas import ScheduleCreate  # noqa: E402
from clinic_booking.main import app  # noqa: E402
from clinic_booking.models import Doctor, Patient  # noqa: E402
from clinic_booking.security_utils import create_access_token  # noqa: E402

# Saturday; the week under test starts on Monday 2024-06-03
FROZEN_NOW = datetime(2024, 6, 1, 8, 0, tzinfo=CLINIC_TIMEZONE)
WEEK_START = date(2024, 6, 3)
MONDAY_SLOTS = ["09:00-09:30", "09:30-10:00"]


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def set(self, *args):
        self.now = datetime(*args, tzinfo=CLINIC_TIMEZONE)


def week_payload(start: date, open_days=None, booked=None):
    """Seven day entries for the week starting ``start``.

    ``open_days`` maps weekday index to slot strings; ``booked`` maps
    (weekday index, slot) to the patient id shown as occupying it.
    """
    open_days = open_days if open_days is not None else {0: MONDAY_SLOTS}
    booked = booked or {}
    days = []
    for index in range(7):
        day = start + timedelta(days=index)
        slots = open_days.get(index, [])
        days.append(
            {
                "day": time_calculator.DAY_LABELS[index],
                "date": day.isoformat(),
                "isAvailable": bool(slots),
                "timeSlots": [
                    {
                        "time": slot,
                        "isAvailable": True,
                        "isBooked": (index, slot) in booked,
                        "patientId": booked.get((index, slot)),
                    }
                    for slot in slots
                ],
            }
        )
    return days


@pytest.fixture(autouse=True)
def clock(monkeypatch):
    frozen = Clock(FROZEN_NOW)
    monkeypatch.setattr(time_calculator, "now_local", lambda: frozen.now)
    return frozen


@pytest.fixture
def engine(tmp_path):
    test_engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def doctor(db):
    row = Doctor(name="Dr. An", email="an@clinic.test")
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def other_doctor(db):
    row = Doctor(name="Dr. Binh", email="binh@clinic.test")
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def patient(db):
    row = Patient(name="Chi", email="chi@example.test")
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def other_patient(db):
    row = Patient(name="Dung", email="dung@example.test")
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def schedule(db, doctor):
    """Dr. An's week of 2024-06-03: Monday open with two slots"""
    return ScheduleService(db).create_schedule(
        ScheduleCreate(doctorId=doctor.id, weekStartDate=WEEK_START.isoformat(), availability=week_payload(WEEK_START))
    )


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(subject_id: int, role: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(subject_id, role)}"}
