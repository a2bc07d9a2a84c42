import logging
from dataclasses import dataclass

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db
from .models import Doctor, Patient
from .security_utils import ROLES, verify_jwt_token

logger = logging.getLogger(__name__)

security = HTTPBearer()


@dataclass
class Principal:
    """Authenticated caller as carried by the token"""

    id: int
    role: str


def get_principal(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Principal:
    """Decode the bearer token into a Principal"""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    token = credentials.credentials
    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received, length: {len(token)}")
        raise HTTPException(status_code=401, detail="Invalid token format. Expected a valid JWT token.")

    payload = verify_jwt_token(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    role = payload.get("role")
    try:
        subject_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        subject_id = None
    if subject_id is None or role not in ROLES:
        logger.error(f"❌ Token missing claims. Available claims: {list(payload.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    return Principal(id=subject_id, role=role)


def _require_role(principal: Principal, role: str) -> None:
    if principal.role != role:
        logger.warning(f"Role '{principal.role}' (id {principal.id}) denied, '{role}' required")
        raise HTTPException(status_code=403, detail=f"{role.capitalize()} access required")


def get_current_patient(
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
) -> Patient:
    _require_role(principal, "patient")
    patient = db.query(Patient).filter(Patient.id == principal.id).first()
    if not patient:
        raise HTTPException(status_code=401, detail="Patient account not found")
    return patient


def get_current_doctor(
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
) -> Doctor:
    _require_role(principal, "doctor")
    doctor = db.query(Doctor).filter(Doctor.id == principal.id).first()
    if not doctor or not doctor.is_active:
        raise HTTPException(status_code=401, detail="Doctor account not found")
    return doctor


def get_current_admin(principal: Principal = Depends(get_principal)) -> Principal:
    """Admins live in the external identity service; the role claim is enough"""
    _require_role(principal, "admin")
    return principal
