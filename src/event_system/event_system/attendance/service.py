from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence

from ..common.datetime_utils import utc_now
from ..common.validators import parse_attendance_status, require_items, require_positive_id
from ..core.enums import AttendanceStatus
from ..core.exceptions import AuthorizationError, DomainError, InvalidStateError, NotFoundError, ValidationError
from ..core.result import Result
from ..database.transaction import TransactionManager
from ..events.model import Event
from ..events.repository import EventRepository
from ..registrations.model import Attendance, EventRegistration, RegistrationRow
from ..registrations.repository import RegistrationRepository
from ..statistics.calculator import build_stats, counts_from_registrations
from ..statistics.model import AttendanceStats
from ..users.model import User
from ..users.repository import UserRepository


@dataclass(frozen=True)
class AttendanceItem:
    registration_id: int
    status: AttendanceStatus


@dataclass(frozen=True)
class EventAttendance:
    """Attendance sheet: event header, active registrants and their stats."""

    event: Event
    rows: Sequence[RegistrationRow]
    stats: AttendanceStats


def parse_attendance_items(raw: Iterable[dict]) -> list[AttendanceItem]:
    """Build items from ``{"registration_id": .., "status": ..}`` mappings."""
    items: list[AttendanceItem] = []
    for item in raw:
        if not isinstance(item, dict):
            raise ValidationError("Each attendance must be an object")
        items.append(
            AttendanceItem(
                registration_id=require_positive_id(item.get("registration_id"), "registration_id"),
                status=parse_attendance_status(item.get("status")),
            )
        )
    return items


class AttendanceService:
    """Use case: validators record, bulk record and reset attendance outcomes."""

    def __init__(
        self,
        events: EventRepository,
        registrations: RegistrationRepository,
        users: UserRepository,
        transactions: TransactionManager,
        *,
        logger: Optional[logging.Logger] = None,
    ):
        self._events = events
        self._registrations = registrations
        self._users = users
        self._tx = transactions
        self._log = logger or logging.getLogger(__name__)

    def get_event_attendance(self, event_id: int) -> Result[EventAttendance]:
        self._log.info("get_event_attendance called event_id=%s", event_id)

        event = self._events.get_by_id(int(event_id))
        if not event:
            self._log.warning("Event %s not found", event_id)
            return Result.failure(NotFoundError(f"Event {event_id} not found"))

        rows = self._registrations.list_for_event(event.event_id, active_only=True)
        stats = build_stats(event, counts_from_registrations(r.registration for r in rows))
        return Result.success(EventAttendance(event=event, rows=rows, stats=stats))

    def validate_attendance(
        self,
        event_id: int,
        registration_id: int,
        status: AttendanceStatus,
        validator_email: str,
        *,
        now: Optional[datetime] = None,
    ) -> Result[EventRegistration]:
        self._log.info(
            "validate_attendance called event_id=%s registration_id=%s status=%s",
            event_id,
            registration_id,
            getattr(status, "value", status),
        )

        try:
            status = parse_attendance_status(status)
            validator = self._get_validator_or_raise(validator_email)

            registration = self._registrations.get_by_id(int(registration_id))
            if not registration or registration.event_id != int(event_id):
                raise NotFoundError(f"Registration {registration_id} not found for event {event_id}")
            if not registration.is_active:
                raise InvalidStateError("Cannot validate attendance for non-registered participants")

            attendance = Attendance(status=status, validated_at=now or utc_now(), validated_by=validator.user_id)
            # The write re-checks the status, so a cancel landing after the read
            # is reported instead of being overwritten.
            if not self._registrations.update_attendance(registration.registration_id, attendance):
                raise InvalidStateError("Cannot validate attendance for non-registered participants")
        except DomainError as e:
            self._log.warning("validate_attendance rejected registration_id=%s: %s", registration_id, e)
            return Result.failure(e)

        updated = registration.with_attendance(attendance)

        self._log.info(
            "Attendance validated for registration %s: %s by %s", registration_id, status.value, validator_email
        )
        return Result.success(updated)

    def bulk_validate_attendance(
        self,
        event_id: int,
        items: Iterable[AttendanceItem],
        validator_email: str,
        *,
        now: Optional[datetime] = None,
    ) -> Result[int]:
        """Apply many outcomes in one transaction.

        Items pointing at a missing registration, another event's registration
        or a non-active one are skipped and not counted. Persistence errors
        roll the whole batch back and propagate.
        """
        try:
            items = require_items(items, "attendance")
            self._log.info("bulk_validate_attendance called event_id=%s items=%d", event_id, len(items))
            validator = self._get_validator_or_raise(validator_email)
        except DomainError as e:
            self._log.warning("bulk_validate_attendance rejected event_id=%s: %s", event_id, e)
            return Result.failure(e)

        now = now or utc_now()
        try:
            with self._tx.transaction():
                by_id = self._registrations.get_by_ids(item.registration_id for item in items)

                pending: dict[int, Attendance] = {}
                for item in items:
                    registration = by_id.get(item.registration_id)
                    if not registration or registration.event_id != int(event_id) or not registration.is_active:
                        self._log.debug("Skipping registration %s for event %s", item.registration_id, event_id)
                        continue
                    pending[item.registration_id] = Attendance(
                        status=item.status, validated_at=now, validated_by=validator.user_id
                    )

                self._registrations.update_attendance_many(list(pending.items()))
        except Exception:
            self._log.exception("Error during bulk attendance validation for event %s", event_id)
            raise

        count = len(pending)
        self._log.info(
            "Bulk attendance validated: %d registrations for event %s by %s", count, event_id, validator_email
        )
        return Result.success(count)

    def reset_attendance(self, event_id: int, registration_id: int, validator_email: str) -> Result[bool]:
        """Clear outcome, timestamp and validator together."""
        self._log.info("reset_attendance called event_id=%s registration_id=%s", event_id, registration_id)

        try:
            self._get_validator_or_raise(validator_email)

            registration = self._registrations.get_by_id(int(registration_id))
            if not registration or registration.event_id != int(event_id):
                raise NotFoundError(f"Registration {registration_id} not found for event {event_id}")
        except DomainError as e:
            self._log.warning("reset_attendance rejected registration_id=%s: %s", registration_id, e)
            return Result.failure(e)

        self._registrations.clear_attendance(registration.registration_id)

        self._log.info("Attendance reset for registration %s by %s", registration_id, validator_email)
        return Result.success(True)

    def _get_validator_or_raise(self, email: str) -> User:
        validator = self._users.get_by_email(email) if email else None
        if not validator:
            self._log.warning("Validator not found: %s", email)
            raise AuthorizationError("Validator not found")
        if not validator.can_validate_attendance:
            self._log.warning("User %s is not authorized to validate attendance", email)
            raise AuthorizationError("Only ESN members or Admins can validate attendance")
        return validator
