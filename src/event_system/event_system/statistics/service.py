from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from ..common.datetime_utils import utc_now
from ..core.constants import (
    DEFAULT_TOP_EVENTS,
    DEFAULT_TREND_MONTHS,
    MAX_TOP_EVENTS,
    MAX_TREND_MONTHS,
    MIN_TOP_EVENTS,
    MIN_TREND_MONTHS,
)
from ..core.exceptions import AuthorizationError, DomainError, NotFoundError
from ..core.result import Result
from ..events.repository import EventRepository
from ..registrations.repository import RegistrationRepository
from ..users.model import User
from ..users.repository import UserRepository
from .calculator import (
    attendance_breakdown,
    build_stats,
    clamp,
    counts_from_groups,
    counts_from_registrations,
    participation_trend,
    top_event,
    trend_start,
)
from .model import AttendanceBreakdown, AttendanceStats, ParticipationTrend, TopEvent


class StatisticsService:
    """Read-only attendance statistics; runs without a transaction.

    The dashboard reports (breakdown, trend, top events) are restricted to
    admins and ESN members; per-event stats are open to any caller.
    """

    def __init__(
        self,
        events: EventRepository,
        registrations: RegistrationRepository,
        users: UserRepository,
        *,
        logger: Optional[logging.Logger] = None,
    ):
        self._events = events
        self._registrations = registrations
        self._users = users
        self._log = logger or logging.getLogger(__name__)

    def get_attendance_stats(self, event_id: int, *, materialize: bool = False) -> Result[AttendanceStats]:
        """Stats from one GROUP BY query, or from the full registration list when ``materialize``.

        Both paths yield identical numbers for the same data.
        """
        self._log.info("get_attendance_stats event_id=%s materialize=%s", event_id, materialize)
        try:
            event = self._events.get_by_id(event_id)
            if not event:
                raise NotFoundError(f"Event {event_id} not found")
        except DomainError as e:
            self._log.warning("get_attendance_stats rejected: %s", e)
            return Result.failure(e)

        if materialize:
            rows = self._registrations.list_for_event(event_id, active_only=True)
            counts = counts_from_registrations(row.registration for row in rows)
        else:
            counts = counts_from_groups(self._registrations.count_attendance_by_status(event_id))

        return Result.success(build_stats(event, counts))

    def verify_access(self, email: str) -> User:
        user = self._users.get_by_email(email) if email else None
        if not user:
            self._log.warning("verify_access: user not found: %s", email)
            raise AuthorizationError("User not found")
        # Same audience as attendance validation: admins and ESN members.
        if not user.can_validate_attendance:
            self._log.warning("verify_access: user %s is not Admin or ESN member", email)
            raise AuthorizationError("Access denied. Only administrators and ESN members can access statistics.")
        return user

    def get_attendance_breakdown(self, email: str) -> Result[AttendanceBreakdown]:
        try:
            self.verify_access(email)
        except DomainError as e:
            return Result.failure(e)

        counts = counts_from_groups(self._registrations.count_all_attendance_by_status())
        self._log.info("get_attendance_breakdown total=%d", counts.total)
        return Result.success(attendance_breakdown(counts))

    def get_participation_trend(
        self,
        email: str,
        months: int = DEFAULT_TREND_MONTHS,
        *,
        now: Optional[datetime] = None,
    ) -> Result[ParticipationTrend]:
        try:
            self.verify_access(email)
        except DomainError as e:
            return Result.failure(e)

        months = clamp(months, MIN_TREND_MONTHS, MAX_TREND_MONTHS)
        now = now or utc_now()
        registrations = self._registrations.list_active_since(trend_start(now, months))
        self._log.info("get_participation_trend months=%d registrations=%d", months, len(registrations))
        return Result.success(participation_trend(registrations, now=now, months=months))

    def get_top_events(self, email: str, count: int = DEFAULT_TOP_EVENTS) -> Result[Sequence[TopEvent]]:
        try:
            self.verify_access(email)
        except DomainError as e:
            return Result.failure(e)

        count = clamp(count, MIN_TOP_EVENTS, MAX_TOP_EVENTS)
        events = [top_event(activity) for activity in self._events.top_by_registrations(count)]
        self._log.info("get_top_events count=%d returning %d", count, len(events))
        return Result.success(events)
