from __future__ import annotations

from enum import Enum


class RegistrationStatus(str, Enum):
    """Registration lifecycle states stored in the database."""

    REGISTERED = "registered"
    CANCELLED = "cancelled"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AttendanceStatus(str, Enum):
    """Attendance outcome recorded by a validator."""

    PRESENT = "present"
    ABSENT = "absent"
    EXCUSED = "excused"


class StudentType(str, Enum):
    """Membership classification of a user."""

    ESN_MEMBER = "esn_member"
    INTERNATIONAL = "international"
    LOCAL = "local"
    ALUMNI = "alumni"


class ErrorKind(str, Enum):
    """Tag carried by domain failures across the service boundary."""

    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    CONFLICT = "conflict"
    INVALID_STATE = "invalid_state"
    VALIDATION = "validation"
