from __future__ import annotations

from typing import Any, Iterable, Optional

from ..core.constants import MAX_FORM_PAYLOAD_LENGTH
from ..core.enums import AttendanceStatus
from ..core.exceptions import ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def require_positive_id(value: Any, field_name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer")
    if number <= 0:
        raise ValidationError(f"{field_name} must be positive")
    return number


def parse_attendance_status(value: Any) -> AttendanceStatus:
    if isinstance(value, AttendanceStatus):
        return value
    try:
        return AttendanceStatus(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in AttendanceStatus)
        raise ValidationError(f"Invalid attendance status {value!r} (expected one of: {allowed})")


def normalize_form_payload(value: Optional[str]) -> str:
    payload = value or ""
    if len(payload) > MAX_FORM_PAYLOAD_LENGTH:
        raise ValidationError(f"Form payload exceeds {MAX_FORM_PAYLOAD_LENGTH} characters")
    return payload


def require_items(items: Iterable, field_name: str) -> list:
    out = list(items or [])
    if not out:
        raise ValidationError(f"At least one {field_name} must be provided")
    return out


def parse_id_list(value: Optional[str], field_name: str) -> list[int]:
    """Comma separated positive ids (``"1,2,3"``); blanks are ignored."""
    return [require_positive_id(part, field_name) for part in (value or "").split(",") if part.strip()]
