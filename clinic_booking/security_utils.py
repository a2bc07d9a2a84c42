"""
Token utilities
Issues and verifies the bearer JWTs handed out by the login service
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError
from jose import jwt as jose_jwt

from .config import ACCESS_TOKEN_EXPIRE_MINUTES, SECRET_KEY

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

ROLES = ("patient", "doctor", "admin")


def create_jwt_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT token

    Args:
        data: Data to encode in the token
        expires_delta: Token expiration time (default ACCESS_TOKEN_EXPIRE_MINUTES)
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    return jose_jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def create_access_token(subject_id: int, role: str, expires_delta: Optional[timedelta] = None) -> str:
    """Token for a patient, doctor or admin identified by ``subject_id``"""
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")
    return create_jwt_token({"sub": str(subject_id), "role": role}, expires_delta)


def verify_jwt_token(token: str) -> Optional[dict[str, Any]]:
    """
    Verify and decode a JWT token

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        return jose_jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None
