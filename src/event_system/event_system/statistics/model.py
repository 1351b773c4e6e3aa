from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence


@dataclass(frozen=True)
class AttendanceCounts:
    """Per-outcome counts over the active registrations of one event."""

    present: int = 0
    absent: int = 0
    excused: int = 0
    not_validated: int = 0

    @property
    def total(self) -> int:
        return self.present + self.absent + self.excused + self.not_validated


@dataclass(frozen=True)
class AttendanceStats:
    event_id: int
    event_title: str
    event_date: Optional[datetime]
    total_registered: int
    total_validated: int
    present_count: int
    absent_count: int
    excused_count: int
    not_yet_validated_count: int
    attendance_rate: Decimal
    validation_rate: Decimal


@dataclass(frozen=True)
class AttendanceBreakdown:
    """Outcome counts across every event; percentages are over validated registrations."""

    present_count: int
    absent_count: int
    excused_count: int
    not_validated_count: int
    total_count: int
    present_percentage: Decimal
    absent_percentage: Decimal
    excused_percentage: Decimal


@dataclass(frozen=True)
class ParticipationPoint:
    label: str
    year: int
    month: int
    registered_count: int
    attended_count: int
    participation_rate: Decimal


@dataclass(frozen=True)
class ParticipationTrend:
    points: Sequence[ParticipationPoint]
    average_rate: Decimal


@dataclass(frozen=True)
class TopEvent:
    event_id: int
    title: str
    start_date: datetime
    registration_count: int
    max_participants: Optional[int]
    fill_rate: Optional[Decimal]
    attendance_rate: Decimal
