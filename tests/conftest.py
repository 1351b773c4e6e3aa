from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from src.event_system.event_system.container import wire_services
from src.event_system.event_system.core.enums import StudentType
from src.event_system.event_system.events.model import Event
from tests.fakes import (
    FIXED_NOW,
    FUTURE_EVENT,
    OPEN_EVENT,
    PAST_EVENT,
    UNLIMITED_EVENT,
    InMemoryDB,
    InMemoryEvents,
    InMemoryRegistrations,
    InMemoryTransactions,
    InMemoryUsers,
)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def db() -> InMemoryDB:
    db = InMemoryDB()
    db.add_user(1, "alice@student.local")
    db.add_user(2, "bob@student.local")
    db.add_user(3, "carol@student.local")
    db.add_user(900, "member@esn.local", student_type=StudentType.ESN_MEMBER)
    db.add_user(901, "admin@esn.local", student_type=StudentType.LOCAL, role_name="Admin")

    def event(event_id, title, start, end, capacity):
        db.events[event_id] = Event(
            event_id=event_id,
            title=title,
            start_date=start,
            end_date=end,
            max_participants=capacity,
            owner_id=900,
        )

    event(OPEN_EVENT, "Welcome Party", FIXED_NOW - timedelta(days=1), FIXED_NOW + timedelta(days=1), 2)
    event(UNLIMITED_EVENT, "City Tour", FIXED_NOW - timedelta(days=1), None, None)
    event(FUTURE_EVENT, "Ski Trip", FIXED_NOW + timedelta(days=3), None, 10)
    event(PAST_EVENT, "Old Dinner", FIXED_NOW - timedelta(days=5), FIXED_NOW - timedelta(days=4), 10)
    return db


@pytest.fixture
def repos(db):
    return InMemoryUsers(db), InMemoryEvents(db), InMemoryRegistrations(db), InMemoryTransactions(db)


@pytest.fixture
def container(repos):
    users, events, registrations, transactions = repos
    return wire_services(
        users_repo=users,
        events_repo=events,
        registrations_repo=registrations,
        transactions=transactions,
    )
