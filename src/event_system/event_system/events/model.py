from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Event:
    """Domain entity: Event with its registration window and optional capacity."""

    event_id: int
    title: str
    start_date: datetime
    end_date: Optional[datetime]
    max_participants: Optional[int]
    owner_id: int
    location: Optional[str] = None

    def registration_opened(self, now: datetime) -> bool:
        return now >= self.start_date

    def registration_closed(self, now: datetime) -> bool:
        return self.end_date is not None and now > self.end_date

    def is_full(self, active_count: int) -> bool:
        return self.max_participants is not None and active_count >= self.max_participants


@dataclass(frozen=True)
class EventActivity:
    """Read-model: an event with its active registration and present counts."""

    event: Event
    registered: int
    present: int
