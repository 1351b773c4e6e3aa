from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

from ..core.enums import AttendanceStatus, RegistrationStatus


@dataclass(frozen=True)
class Attendance:
    """Attendance sub-record of a registration; all three fields move together."""

    status: Optional[AttendanceStatus] = None
    validated_at: Optional[datetime] = None
    validated_by: Optional[int] = None

    @property
    def is_validated(self) -> bool:
        return self.status is not None


NOT_VALIDATED = Attendance()


@dataclass(frozen=True)
class EventRegistration:
    """Domain entity: one user's registration for one event."""

    registration_id: int
    user_id: int
    event_id: int
    status: RegistrationStatus
    registered_at: Optional[datetime]
    form_payload: str = ""
    attendance: Attendance = field(default=NOT_VALIDATED)

    @property
    def is_active(self) -> bool:
        return self.status == RegistrationStatus.REGISTERED

    def with_attendance(self, attendance: Attendance) -> "EventRegistration":
        return replace(self, attendance=attendance)


@dataclass(frozen=True)
class NewRegistration:
    user_id: int
    event_id: int
    registered_at: datetime
    form_payload: str = ""


@dataclass(frozen=True)
class RegistrationRow:
    """Read-model: registration joined with its registrant and validator names."""

    registration: EventRegistration
    email: str
    first_name: str
    last_name: str
    validator_name: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class RegistrationConfirmation:
    event_id: int
    registration_id: int
    status: RegistrationStatus
    message: str


@dataclass(frozen=True)
class UserRegistration:
    """Read-model: one of a user's registrations with its event header."""

    registration: EventRegistration
    event_title: str
    event_start_date: datetime
    event_end_date: Optional[datetime] = None
    event_location: Optional[str] = None
