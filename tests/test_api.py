from conftest import WEEK_START, auth_headers, week_payload
from sqlalchemy.exc import OperationalError

from clinic_booking.domain.scheduling.repository import ScheduleRepository


def _book(client, patient, doctor, timeslot="09:00-09:30"):
    return client.post(
        "/patient/book-appointment",
        json={"doctorId": doctor.id, "appointmentDate": "2024-06-03", "timeslot": timeslot, "notes": "headache"},
        headers=auth_headers(patient.id, "patient"),
    )


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_slot_lookup_envelope(client, doctor, patient, schedule):
    response = client.get(
        f"/patient/doctor/schedule/{doctor.id}", params={"date": "2024-06-03"}, headers=auth_headers(patient.id, "patient")
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"] == [{"time": "09:00-09:30"}, {"time": "09:30-10:00"}]


def test_slot_lookup_errors(client, doctor, patient, schedule):
    headers = auth_headers(patient.id, "patient")
    bad_date = client.get(f"/patient/doctor/schedule/{doctor.id}", params={"date": "03-06-2024"}, headers=headers)
    assert bad_date.status_code == 400
    assert bad_date.json()["success"] is False

    assert client.get("/patient/doctor/schedule/9999", params={"date": "2024-06-03"}, headers=headers).status_code == 404

    no_hours = client.get(f"/patient/doctor/schedule/{doctor.id}", params={"date": "2024-06-11"}, headers=headers)
    assert no_hours.status_code == 200
    assert no_hours.json()["data"] == []


def test_book_conflict_and_cancel_over_http(client, doctor, patient, other_patient, schedule):
    booked = _book(client, patient, doctor)
    assert booked.status_code == 201
    appointment = booked.json()["data"]
    assert appointment["status"] == "pending"
    assert appointment["appointmentDate"] == "2024-06-03"
    assert appointment["doctor"]["name"] == "Dr. An"

    clash = _book(client, other_patient, doctor)
    assert clash.status_code == 409
    assert clash.json() == {"success": False, "message": "This time slot is already booked"}

    foreign = client.post(
        f"/patient/cancel-appointment/{appointment['id']}", headers=auth_headers(other_patient.id, "patient")
    )
    assert foreign.status_code == 403

    cancelled = client.post(
        f"/patient/cancel-appointment/{appointment['id']}", headers=auth_headers(patient.id, "patient")
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["status"] == "cancelled"

    again = client.post(f"/patient/cancel-appointment/{appointment['id']}", headers=auth_headers(patient.id, "patient"))
    assert again.status_code == 409

    mine = client.get("/patient/my-appointment", headers=auth_headers(patient.id, "patient")).json()["data"]
    assert [a["id"] for a in mine] == [appointment["id"]]


def test_body_validation_is_422_envelope(client, doctor, patient, schedule):
    response = client.post(
        "/patient/book-appointment",
        json={"doctorId": doctor.id, "appointmentDate": "2024-06-03", "timeslot": "9am"},
        headers=auth_headers(patient.id, "patient"),
    )
    assert response.status_code == 422
    assert response.json()["success"] is False
    assert "timeslot" in response.json()["message"]


def test_authentication_and_roles(client, doctor, patient, schedule):
    missing = client.get(f"/patient/doctor/schedule/{doctor.id}", params={"date": "2024-06-03"})
    assert missing.status_code in (401, 403)

    garbage = client.get(
        "/patient/my-appointment", headers={"Authorization": "Bearer not.a.token"}
    )
    assert garbage.status_code == 401

    wrong_role = client.get("/patient/my-appointment", headers=auth_headers(doctor.id, "doctor"))
    assert wrong_role.status_code == 403

    unknown_patient = client.get("/patient/my-appointment", headers=auth_headers(9999, "patient"))
    assert unknown_patient.status_code == 401


def test_admin_schedule_crud(client, doctor):
    admin = auth_headers(1, "admin")
    created = client.post(
        "/admin/schedules",
        json={"doctorId": doctor.id, "weekStartDate": WEEK_START.isoformat(), "availability": week_payload(WEEK_START)},
        headers=admin,
    )
    assert created.status_code == 201
    schedule = created.json()["data"]
    assert schedule["weekNumber"] == 23
    assert schedule["availability"][0]["day"] == "Thứ 2"
    assert schedule["availability"][0]["timeSlots"][0] == {
        "time": "09:00-09:30",
        "isAvailable": True,
        "isBooked": False,
        "patientId": None,
    }

    duplicate = client.post(
        "/admin/schedules",
        json={"doctorId": doctor.id, "weekStartDate": WEEK_START.isoformat(), "availability": week_payload(WEEK_START)},
        headers=admin,
    )
    assert duplicate.status_code == 409

    listed = client.get("/admin/schedules", params={"weekStartDate": "2024-06-06"}, headers=admin).json()["data"]
    assert [s["id"] for s in listed] == [schedule["id"]]

    updated = client.put(
        f"/admin/schedules/{schedule['id']}",
        json={"weekStartDate": WEEK_START.isoformat(), "availability": week_payload(WEEK_START, {2: ["15:00-15:30"]})},
        headers=admin,
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["availability"][2]["isAvailable"] is True

    assert client.delete(f"/admin/schedules/{schedule['id']}", headers=admin).status_code == 200
    assert client.get(f"/admin/schedules/{schedule['id']}", headers=admin).status_code == 404


def test_schedule_update_conflict_payload(client, doctor, patient, schedule):
    appointment = _book(client, patient, doctor).json()["data"]
    response = client.put(
        f"/admin/schedules/{schedule.id}",
        json={"weekStartDate": WEEK_START.isoformat(), "availability": week_payload(WEEK_START, {})},
        headers=auth_headers(1, "admin"),
    )
    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["conflicts"][0]["appointments"][0]["appointmentId"] == appointment["id"]

    blocked = client.delete(f"/admin/schedules/{schedule.id}", headers=auth_headers(1, "admin"))
    assert blocked.status_code == 409


def test_doctor_endpoints(client, doctor, other_doctor, patient, schedule):
    appointment = _book(client, patient, doctor).json()["data"]
    doctor_headers = auth_headers(doctor.id, "doctor")

    week = client.get("/doctor/my-schedule", params={"date": "2024-06-05"}, headers=doctor_headers)
    assert week.status_code == 200
    assert week.json()["data"]["availability"][0]["timeSlots"][0]["isBooked"] is True

    foreign = client.put(
        f"/doctor/appointment/{appointment['id']}",
        json={"status": "completed"},
        headers=auth_headers(other_doctor.id, "doctor"),
    )
    assert foreign.status_code == 403

    invalid = client.put(f"/doctor/appointment/{appointment['id']}", json={"status": "done"}, headers=doctor_headers)
    assert invalid.status_code == 422

    completed = client.put(
        f"/doctor/appointment/{appointment['id']}", json={"status": "completed"}, headers=doctor_headers
    )
    assert completed.json()["data"]["status"] == "completed"

    rows = client.get("/doctor/completed-appointments", headers=doctor_headers).json()["data"]
    assert rows[0]["hasMedicalHistory"] is False


def test_admin_appointments_and_reconcile(client, doctor, patient, schedule):
    appointment = _book(client, patient, doctor).json()["data"]
    admin = auth_headers(1, "admin")

    assert len(client.get("/admin/appointments", headers=admin).json()["data"]) == 1
    assert client.get(f"/admin/appointment/{appointment['id']}", headers=admin).json()["data"]["patientId"] == patient.id

    reconciled = client.post(f"/admin/schedules/{schedule.id}/reconcile", headers=admin)
    assert reconciled.status_code == 200
    assert reconciled.json()["data"]["changedSlots"] == 0

    assert client.delete(f"/admin/appointment/{appointment['id']}", headers=admin).status_code == 200
    slots = client.get(
        f"/patient/doctor/schedule/{doctor.id}", params={"date": "2024-06-03"}, headers=auth_headers(patient.id, "patient")
    ).json()["data"]
    assert {"time": "09:00-09:30"} in slots


def test_database_failure_on_read_keeps_the_error_envelope(client, doctor, patient, schedule, monkeypatch):
    def unreachable(*args, **kwargs):
        raise OperationalError("SELECT schedules", {}, Exception("database is gone"))

    monkeypatch.setattr(ScheduleRepository, "get_schedule_for_week", staticmethod(unreachable))
    response = client.get(
        f"/patient/doctor/schedule/{doctor.id}", params={"date": "2024-06-03"}, headers=auth_headers(patient.id, "patient")
    )
    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Database error, please try again later"}
