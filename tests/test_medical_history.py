import pytest
from conftest import auth_headers

from clinic_booking.domain.appointments.booking_service import BookingService
from clinic_booking.domain.appointments.schemas import AppointmentCreate, AppointmentStatusUpdate
from clinic_booking.domain.medical_history.schemas import MedicalHistoryCreate, MedicalHistoryUpdate
from clinic_booking.domain.medical_history.service import MedicalHistoryService
from clinic_booking.exceptions import AuthorizationError, ConflictError, NotFoundError


@pytest.fixture
def appointment(db, doctor, patient, schedule):
    return BookingService(db).book(
        patient.id, AppointmentCreate(doctorId=doctor.id, appointmentDate="2024-06-03", timeslot="09:00-09:30")
    )


def _complete(db, appointment, doctor):
    BookingService(db).update_status(appointment.id, doctor.id, AppointmentStatusUpdate(status="completed"))


def test_history_requires_completed_appointment(db, doctor, appointment):
    service = MedicalHistoryService(db)
    data = MedicalHistoryCreate(appointmentId=appointment.id, diagnosis="Flu", treatment="Rest")
    with pytest.raises(ConflictError):
        service.create(doctor.id, data)

    _complete(db, appointment, doctor)
    record = service.create(doctor.id, data)
    assert record.appointment_id == appointment.id
    assert record.patient_id == appointment.patient_id

    with pytest.raises(ConflictError):
        service.create(doctor.id, data)


def test_history_ownership(db, doctor, other_doctor, appointment):
    _complete(db, appointment, doctor)
    service = MedicalHistoryService(db)
    with pytest.raises(AuthorizationError):
        service.create(
            other_doctor.id, MedicalHistoryCreate(appointmentId=appointment.id, diagnosis="Flu", treatment="Rest")
        )
    with pytest.raises(NotFoundError):
        service.create(doctor.id, MedicalHistoryCreate(appointmentId=9999, diagnosis="Flu", treatment="Rest"))

    record = service.create(
        doctor.id, MedicalHistoryCreate(appointmentId=appointment.id, diagnosis="Flu", treatment="Rest")
    )
    with pytest.raises(AuthorizationError):
        service.update(record.id, other_doctor.id, MedicalHistoryUpdate(treatment="Antibiotics"))
    assert service.update(record.id, doctor.id, MedicalHistoryUpdate(treatment="Antibiotics")).treatment == "Antibiotics"


def test_history_blocks_appointment_deletion(db, doctor, appointment):
    _complete(db, appointment, doctor)
    MedicalHistoryService(db).create(
        doctor.id, MedicalHistoryCreate(appointmentId=appointment.id, diagnosis="Flu", treatment="Rest")
    )
    with pytest.raises(ConflictError):
        BookingService(db).delete_appointment(appointment.id)


def test_history_endpoints(client, db, doctor, patient, appointment):
    _complete(db, appointment, doctor)
    doctor_headers = auth_headers(doctor.id, "doctor")

    created = client.post(
        "/doctor/medical-history",
        json={"appointmentId": appointment.id, "diagnosis": "Migraine", "treatment": "<i>Ibuprofen</i>"},
        headers=doctor_headers,
    )
    assert created.status_code == 201
    record = created.json()["data"]
    assert record["treatment"] == "&lt;i&gt;Ibuprofen&lt;/i&gt;"
    assert record["patientName"] == "Chi"

    assert len(client.get("/doctor/medical-history", headers=doctor_headers).json()["data"]) == 1
    assert len(client.get(f"/doctor/medical-history/{patient.id}", headers=doctor_headers).json()["data"]) == 1
    own = client.get("/patient/medical-history", headers=auth_headers(patient.id, "patient")).json()["data"]
    assert own[0]["doctorName"] == "Dr. An"

    empty = client.post(
        "/doctor/medical-history",
        json={"appointmentId": appointment.id, "diagnosis": "   ", "treatment": "x"},
        headers=doctor_headers,
    )
    assert empty.status_code == 422

    assert client.delete(f"/doctor/medical-history/{record['id']}", headers=doctor_headers).status_code == 200
    assert client.get("/doctor/medical-history", headers=doctor_headers).json()["data"] == []
