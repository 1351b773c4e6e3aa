from __future__ import annotations

from datetime import datetime
from typing import Iterable, Mapping, Optional, Protocol, Sequence, Tuple

from ..core.enums import AttendanceStatus
from .model import Attendance, EventRegistration, NewRegistration, RegistrationRow, UserRegistration


class RegistrationRepository(Protocol):
    """Registration store.

    Writes touch only the columns they own and carry their status guard in
    the WHERE clause; the boolean/int results report how many rows matched.
    """

    def find_by_event_and_user(self, event_id: int, user_id: int) -> Optional[EventRegistration]:
        raise NotImplementedError

    def find_for_user_and_events(self, user_id: int, event_ids: Iterable[int]) -> Mapping[int, EventRegistration]:
        """The user's registrations for the given events, keyed by event id."""

        raise NotImplementedError

    def get_by_id(self, registration_id: int) -> Optional[EventRegistration]:
        raise NotImplementedError

    def get_by_ids(self, registration_ids: Iterable[int]) -> Mapping[int, EventRegistration]:
        """Batched lookup keyed by registration id; unknown ids are absent."""

        raise NotImplementedError

    def insert(self, registration: NewRegistration) -> int:
        """Insert an active registration.

        Raises ConflictError when the (user, event) pair already has a row.
        """

        raise NotImplementedError

    def reactivate(self, registration_id: int, *, registered_at: datetime, form_payload: str) -> bool:
        """Flip a non-active registration back to registered (attendance untouched)."""

        raise NotImplementedError

    def cancel(self, registration_id: int) -> bool:
        """Set status to cancelled unless it already is."""

        raise NotImplementedError

    def update_attendance(self, registration_id: int, attendance: Attendance) -> bool:
        """Write the attendance columns; only matches an active registration."""

        raise NotImplementedError

    def update_attendance_many(self, changes: Sequence[Tuple[int, Attendance]]) -> int:
        raise NotImplementedError

    def clear_attendance(self, registration_id: int) -> bool:
        raise NotImplementedError

    def list_for_event(self, event_id: int, *, active_only: bool = False) -> Sequence[RegistrationRow]:
        raise NotImplementedError

    def list_for_user(self, user_id: int) -> Sequence[UserRegistration]:
        raise NotImplementedError

    def list_active_since(self, since: datetime) -> Sequence[EventRegistration]:
        """Active registrations with ``registered_at >= since``."""

        raise NotImplementedError

    def count_attendance_by_status(self, event_id: int) -> Mapping[Optional[AttendanceStatus], int]:
        """Active registrations of an event grouped by attendance outcome (None = not validated)."""

        raise NotImplementedError

    def count_all_attendance_by_status(self) -> Mapping[Optional[AttendanceStatus], int]:
        """Same grouping across every event."""

        raise NotImplementedError
