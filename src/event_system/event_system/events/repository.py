from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import Event, EventActivity


class EventRepository(Protocol):
    def get_by_id(self, event_id: int) -> Optional[Event]:
        raise NotImplementedError

    def get_by_id_for_update(self, event_id: int) -> Optional[Event]:
        """Load the event and lock its row until the current transaction ends.

        Concurrent registrations for the same event queue up behind this lock,
        which keeps the capacity recount and the insert serialized.
        """

        raise NotImplementedError

    def count_active_registrations(self, event_id: int) -> int:
        raise NotImplementedError

    def top_by_registrations(self, limit: int) -> Sequence[EventActivity]:
        """Events ordered by active registrations, most first (ties by id)."""

        raise NotImplementedError
