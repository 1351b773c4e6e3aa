from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Mapping, Optional, Sequence

from ..common.datetime_utils import utc_now
from ..common.validators import normalize_form_payload
from ..core.enums import RegistrationStatus
from ..core.exceptions import AuthorizationError, ConflictError, DomainError, InvalidStateError, NotFoundError
from ..core.result import Result
from ..database.transaction import TransactionManager
from ..events.model import Event
from ..events.repository import EventRepository
from ..users.model import User
from ..users.repository import UserRepository
from .model import NewRegistration, RegistrationConfirmation, RegistrationRow, UserRegistration
from .repository import RegistrationRepository

REGISTERED_MESSAGE = "Successfully registered for event"
UNREGISTERED_MESSAGE = "Successfully unregistered from event"


@dataclass(frozen=True)
class EventRegistrations:
    event: Event
    rows: Sequence[RegistrationRow]

    @property
    def active_count(self) -> int:
        return sum(1 for r in self.rows if r.registration.is_active)


class RegistrationService:
    """Use case: register for / unregister from events.

    The capacity check and the write happen inside one transaction, after the
    event row has been locked, so concurrent callers cannot both pass the check.
    """

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

    def register_for_event(
        self,
        event_id: int,
        email: str,
        form_payload: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
    ) -> Result[RegistrationConfirmation]:
        self._log.info("register_for_event called event_id=%s email=%s", event_id, email)
        now = now or utc_now()

        try:
            payload = normalize_form_payload(form_payload)
            with self._tx.transaction():
                registration_id = self._register(int(event_id), email, payload, now)
        except DomainError as e:
            self._log.warning("register_for_event rejected event_id=%s email=%s: %s", event_id, email, e)
            return Result.failure(e)

        self._log.info("register_for_event completed event_id=%s email=%s", event_id, email)
        return Result.success(
            RegistrationConfirmation(
                event_id=int(event_id),
                registration_id=registration_id,
                status=RegistrationStatus.REGISTERED,
                message=REGISTERED_MESSAGE,
            ),
            REGISTERED_MESSAGE,
        )

    def unregister_from_event(self, event_id: int, email: str) -> Result[RegistrationConfirmation]:
        """Flip the caller's registration to cancelled; the row is kept for re-registration."""
        self._log.info("unregister_from_event called event_id=%s email=%s", event_id, email)

        try:
            user = self._get_user_or_raise(email)
            registration = self._registrations.find_by_event_and_user(int(event_id), user.user_id)
            if not registration or registration.status == RegistrationStatus.CANCELLED:
                raise NotFoundError("No active registration found")
            # Only the status column is written so a concurrent attendance
            # validation survives the cancel.
            if not self._registrations.cancel(registration.registration_id):
                raise NotFoundError("No active registration found")
        except DomainError as e:
            self._log.warning("unregister_from_event rejected event_id=%s email=%s: %s", event_id, email, e)
            return Result.failure(e)

        self._log.info("unregister_from_event completed event_id=%s email=%s", event_id, email)
        return Result.success(
            RegistrationConfirmation(
                event_id=int(event_id),
                registration_id=registration.registration_id,
                status=RegistrationStatus.CANCELLED,
                message=UNREGISTERED_MESSAGE,
            ),
            UNREGISTERED_MESSAGE,
        )

    def get_event_registrations(self, event_id: int) -> Result[EventRegistrations]:
        event = self._events.get_by_id(int(event_id))
        if not event:
            return Result.failure(NotFoundError(f"Event {event_id} not found"))

        rows = self._registrations.list_for_event(event.event_id)
        self._log.info("get_event_registrations event_id=%s returning %d registrations", event_id, len(rows))
        return Result.success(EventRegistrations(event=event, rows=rows))

    def is_registered(self, event_id: int, email: str) -> bool:
        user = self._users.get_by_email(email) if email else None
        if not user:
            return False
        registration = self._registrations.find_by_event_and_user(int(event_id), user.user_id)
        return bool(registration and registration.is_active)

    def get_user_registrations(self, email: str) -> Result[Sequence[UserRegistration]]:
        """Every registration of the caller, cancelled ones included, newest event first."""
        try:
            user = self._get_user_or_raise(email)
        except DomainError as e:
            self._log.warning("get_user_registrations rejected email=%s: %s", email, e)
            return Result.failure(e)

        registrations = self._registrations.list_for_user(user.user_id)
        self._log.info("get_user_registrations email=%s returning %d registrations", email, len(registrations))
        return Result.success(registrations)

    def registration_flags(self, email: str, event_ids: Iterable[int]) -> Mapping[int, bool]:
        """Whether the caller holds an active registration, per event id, in one lookup."""
        ids = [int(i) for i in event_ids]
        user = self._users.get_by_email(email) if email else None
        if not user or not ids:
            return {event_id: False for event_id in ids}

        found = self._registrations.find_for_user_and_events(user.user_id, ids)
        return {event_id: bool(found.get(event_id) and found[event_id].is_active) for event_id in ids}

    # -------- internals (run inside the transaction) --------
    def _register(self, event_id: int, email: str, payload: str, now: datetime) -> int:
        user = self._get_user_or_raise(email)

        event = self._events.get_by_id_for_update(event_id)
        if not event:
            raise NotFoundError(f"Event not found: {event_id}")

        if not event.registration_opened(now):
            raise InvalidStateError("Registration period has not started yet")
        if event.registration_closed(now):
            raise InvalidStateError("Registration period has ended")

        existing = self._registrations.find_by_event_and_user(event_id, user.user_id)
        if existing and existing.is_active:
            raise ConflictError("Already registered for this event")

        # A reactivated row counts toward capacity exactly like a new one.
        self._ensure_capacity(event)

        if existing:
            self._log.info("Reactivating %s registration %s", existing.status.value, existing.registration_id)
            if not self._registrations.reactivate(existing.registration_id, registered_at=now, form_payload=payload):
                raise ConflictError("Already registered for this event")
            return existing.registration_id

        registration_id = self._registrations.insert(
            NewRegistration(user_id=user.user_id, event_id=event_id, registered_at=now, form_payload=payload)
        )
        self._log.info("Created registration %s for user %s", registration_id, user.user_id)
        return registration_id

    def _ensure_capacity(self, event: Event) -> None:
        if event.max_participants is None:
            return
        active = self._events.count_active_registrations(event.event_id)
        if event.is_full(active):
            self._log.info("Event %s is full (%d/%d)", event.event_id, active, event.max_participants)
            raise ConflictError("Event is full")

    def _get_user_or_raise(self, email: str) -> User:
        user = self._users.get_by_email(email) if email else None
        if not user:
            raise AuthorizationError(f"User not found: {email}")
        return user
