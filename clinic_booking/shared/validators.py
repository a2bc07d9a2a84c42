"""Shared validation utilities"""

import html
import re
from typing import Optional

TIMESLOT_PATTERN = re.compile(r"^\d{2}:\d{2}-\d{2}:\d{2}$")
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")

VALID_APPOINTMENT_STATUSES = ("pending", "completed", "cancelled")

MAX_NOTES_LENGTH = 1000


def validate_timeslot_format(value: Optional[str]) -> str:
    """
    Validate the ``HH:MM-HH:MM`` slot format.

    Raises:
        ValueError: If the value does not match the format
    """
    if not value or not TIMESLOT_PATTERN.match(value.strip()):
        raise ValueError("Timeslot must be in the format HH:MM-HH:MM")
    return value.strip()


def validate_status(status: Optional[str]) -> str:
    """
    Normalize an appointment status to lower case.

    Raises:
        ValueError: If the status is not one of pending, completed, cancelled
    """
    normalized = (status or "").strip().lower()
    if normalized not in VALID_APPOINTMENT_STATUSES:
        raise ValueError("Invalid status")
    return normalized


def sanitize_text(value: Optional[str], max_length: int, field: str = "Text") -> str:
    """
    Trim free text, drop control characters and HTML-escape the rest.

    Raises:
        ValueError: If the trimmed text is longer than ``max_length``
    """
    text = CONTROL_CHARS.sub("", str(value or "")).strip()
    if len(text) > max_length:
        raise ValueError(f"{field} must be at most {max_length} characters")
    return html.escape(text, quote=True)


def clean_notes(notes: Optional[str]) -> str:
    return sanitize_text(notes, MAX_NOTES_LENGTH, field="Notes")
