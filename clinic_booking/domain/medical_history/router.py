"""Medical history router - doctor records, patient read-only view"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...auth import get_current_doctor, get_current_patient
from ...database import get_db
from ...models import Doctor, MedicalHistory, Patient
from ...shared.responses import success_response
from .schemas import MedicalHistoryCreate, MedicalHistoryResponse, MedicalHistoryUpdate
from .service import MedicalHistoryService

router = APIRouter(tags=["Medical History"])


def get_medical_history_service(db: Session = Depends(get_db)) -> MedicalHistoryService:
    return MedicalHistoryService(db)


def record_to_response(record: MedicalHistory) -> MedicalHistoryResponse:
    return MedicalHistoryResponse(
        id=record.id,
        appointmentId=record.appointment_id,
        patientId=record.patient_id,
        doctorId=record.doctor_id,
        patientName=record.patient.name if record.patient else None,
        doctorName=record.doctor.name if record.doctor else None,
        diagnosis=record.diagnosis,
        treatment=record.treatment,
        date=record.date,
    )


@router.post("/doctor/medical-history", status_code=status.HTTP_201_CREATED)
async def create_medical_history(
    data: MedicalHistoryCreate,
    current_doctor: Doctor = Depends(get_current_doctor),
    service: MedicalHistoryService = Depends(get_medical_history_service),
):
    record = service.create(current_doctor.id, data)
    return success_response(record_to_response(record), "Medical history created")


@router.get("/doctor/medical-history")
async def list_doctor_medical_history(
    current_doctor: Doctor = Depends(get_current_doctor),
    service: MedicalHistoryService = Depends(get_medical_history_service),
):
    records = service.list_for_doctor(current_doctor.id)
    return success_response([record_to_response(r) for r in records], "Medical history retrieved")


@router.get("/doctor/medical-history/{patient_id}")
async def list_patient_medical_history_for_doctor(
    patient_id: int,
    current_doctor: Doctor = Depends(get_current_doctor),
    service: MedicalHistoryService = Depends(get_medical_history_service),
):
    records = service.list_for_doctor(current_doctor.id, patient_id)
    return success_response([record_to_response(r) for r in records], "Medical history retrieved")


@router.put("/doctor/medical-history/{record_id}")
async def update_medical_history(
    record_id: int,
    data: MedicalHistoryUpdate,
    current_doctor: Doctor = Depends(get_current_doctor),
    service: MedicalHistoryService = Depends(get_medical_history_service),
):
    record = service.update(record_id, current_doctor.id, data)
    return success_response(record_to_response(record), "Medical history updated")


@router.delete("/doctor/medical-history/{record_id}")
async def delete_medical_history(
    record_id: int,
    current_doctor: Doctor = Depends(get_current_doctor),
    service: MedicalHistoryService = Depends(get_medical_history_service),
):
    result = service.delete(record_id, current_doctor.id)
    return success_response(None, result["message"])


@router.get("/patient/medical-history")
async def list_my_medical_history(
    current_patient: Patient = Depends(get_current_patient),
    service: MedicalHistoryService = Depends(get_medical_history_service),
):
    records = service.list_for_patient(current_patient.id)
    return success_response([record_to_response(r) for r in records], "Medical history retrieved")
