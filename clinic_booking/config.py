import logging
import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic_booking.db")

# All day/week boundaries are computed in one civil timezone (Indochina Time, UTC+7)
DEFAULT_CLINIC_TIMEZONE = "Asia/Ho_Chi_Minh"
CLINIC_TIMEZONE_NAME = os.getenv("CLINIC_TIMEZONE", DEFAULT_CLINIC_TIMEZONE)
try:
    CLINIC_TIMEZONE = ZoneInfo(CLINIC_TIMEZONE_NAME)
except (ZoneInfoNotFoundError, ValueError):
    logger.warning(
        f"Invalid CLINIC_TIMEZONE '{CLINIC_TIMEZONE_NAME}'. Defaulting to {DEFAULT_CLINIC_TIMEZONE}."
    )
    CLINIC_TIMEZONE = ZoneInfo(DEFAULT_CLINIC_TIMEZONE)

# Patients cannot cancel an appointment that starts within this many minutes
CANCELLATION_CUTOFF_MINUTES = int(os.getenv("CANCELLATION_CUTOFF_MINUTES", "60"))

# Retries when a concurrent write bumped the schedule version under us
BOOKING_MAX_RETRIES = int(os.getenv("BOOKING_MAX_RETRIES", "3"))

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(7 * 24 * 60)))

# Frontend origins (patient app + admin/doctor dashboard)
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:5173,http://localhost:5174,http://localhost:3000",
).split(",")

# Redis-backed rate limiting and slot cache
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
SLOT_CACHE_ENABLED = os.getenv("SLOT_CACHE_ENABLED", "true").lower() == "true"
SLOT_CACHE_TTL = int(os.getenv("SLOT_CACHE_TTL", "30"))
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
