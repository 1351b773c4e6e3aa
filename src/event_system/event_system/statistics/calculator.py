from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Iterable, Mapping, Optional

from ..core.constants import RATE_DECIMALS
from ..core.enums import AttendanceStatus
from ..events.model import Event, EventActivity
from ..registrations.model import EventRegistration
from .model import (
    AttendanceBreakdown,
    AttendanceCounts,
    AttendanceStats,
    ParticipationPoint,
    ParticipationTrend,
    TopEvent,
)

_QUANT = Decimal(1).scaleb(-RATE_DECIMALS)


def percentage(part: int, total: int) -> Decimal:
    """``part / total * 100`` rounded half-even to two places; 0 when total is 0."""
    if total <= 0:
        return Decimal("0.00")
    return (Decimal(part) * 100 / Decimal(total)).quantize(_QUANT, rounding=ROUND_HALF_EVEN)


def counts_from_groups(groups: Mapping[Optional[AttendanceStatus], int]) -> AttendanceCounts:
    """Aggregate path: counts from a GROUP BY attendance_status result."""
    return AttendanceCounts(
        present=int(groups.get(AttendanceStatus.PRESENT, 0)),
        absent=int(groups.get(AttendanceStatus.ABSENT, 0)),
        excused=int(groups.get(AttendanceStatus.EXCUSED, 0)),
        not_validated=int(groups.get(None, 0)),
    )


def counts_from_registrations(registrations: Iterable[EventRegistration]) -> AttendanceCounts:
    """Materialized path: counts the active registrations in memory."""
    tally = {status: 0 for status in AttendanceStatus}
    not_validated = 0
    for reg in registrations:
        if not reg.is_active:
            continue
        if reg.attendance.status is None:
            not_validated += 1
        else:
            tally[reg.attendance.status] += 1
    return AttendanceCounts(
        present=tally[AttendanceStatus.PRESENT],
        absent=tally[AttendanceStatus.ABSENT],
        excused=tally[AttendanceStatus.EXCUSED],
        not_validated=not_validated,
    )


def build_stats(event: Event, counts: AttendanceCounts) -> AttendanceStats:
    total = counts.total
    validated = total - counts.not_validated
    return AttendanceStats(
        event_id=event.event_id,
        event_title=event.title,
        event_date=event.start_date,
        total_registered=total,
        total_validated=validated,
        present_count=counts.present,
        absent_count=counts.absent,
        excused_count=counts.excused,
        not_yet_validated_count=counts.not_validated,
        attendance_rate=percentage(counts.present, total),
        validation_rate=percentage(validated, total),
    )


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, int(value)))


def attendance_breakdown(counts: AttendanceCounts) -> AttendanceBreakdown:
    validated = counts.total - counts.not_validated
    return AttendanceBreakdown(
        present_count=counts.present,
        absent_count=counts.absent,
        excused_count=counts.excused,
        not_validated_count=counts.not_validated,
        total_count=counts.total,
        present_percentage=percentage(counts.present, validated),
        absent_percentage=percentage(counts.absent, validated),
        excused_percentage=percentage(counts.excused, validated),
    )


def _month_index(year: int, month: int) -> int:
    return year * 12 + (month - 1)


def trend_start(now: datetime, months: int) -> datetime:
    """First day of the oldest month in a window of ``months`` ending with the current one."""
    index = _month_index(now.year, now.month) - (months - 1)
    return datetime(index // 12, index % 12 + 1, 1)


def participation_trend(
    registrations: Iterable[EventRegistration], *, now: datetime, months: int
) -> ParticipationTrend:
    """Monthly present/registered rates over the last ``months`` months, current month included."""
    first = _month_index(now.year, now.month) - (months - 1)
    registered = [0] * months
    attended = [0] * months
    for reg in registrations:
        if reg.registered_at is None:
            continue
        slot = _month_index(reg.registered_at.year, reg.registered_at.month) - first
        if not 0 <= slot < months:
            continue
        registered[slot] += 1
        if reg.attendance.status == AttendanceStatus.PRESENT:
            attended[slot] += 1

    points = []
    for slot in range(months):
        start = datetime((first + slot) // 12, (first + slot) % 12 + 1, 1)
        points.append(
            ParticipationPoint(
                label=start.strftime("%b %Y"),
                year=start.year,
                month=start.month,
                registered_count=registered[slot],
                attended_count=attended[slot],
                participation_rate=percentage(attended[slot], registered[slot]),
            )
        )
    return ParticipationTrend(points=points, average_rate=percentage(sum(attended), sum(registered)))


def top_event(activity: EventActivity) -> TopEvent:
    event = activity.event
    capacity = event.max_participants
    return TopEvent(
        event_id=event.event_id,
        title=event.title,
        start_date=event.start_date,
        registration_count=activity.registered,
        max_participants=capacity,
        fill_rate=percentage(activity.registered, capacity) if capacity else None,
        attendance_rate=percentage(activity.present, activity.registered),
    )
