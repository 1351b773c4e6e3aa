from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import timedelta

import pytest

from src.event_system.event_system.core.enums import AttendanceStatus, ErrorKind, RegistrationStatus
from src.event_system.event_system.core.exceptions import ConflictError
from src.event_system.event_system.events.model import Event
from tests.fakes import FUTURE_EVENT, OPEN_EVENT, PAST_EVENT, UNLIMITED_EVENT


def test_capacity_scenario_end_to_end(container, db, fixed_now):
    svc = container.registration_service

    assert svc.register_for_event(OPEN_EVENT, "alice@student.local", now=fixed_now).ok
    assert db.active_count(OPEN_EVENT) == 1
    assert svc.register_for_event(OPEN_EVENT, "bob@student.local", now=fixed_now).ok
    assert db.active_count(OPEN_EVENT) == 2

    full = svc.register_for_event(OPEN_EVENT, "carol@student.local", now=fixed_now)
    assert full.error == ErrorKind.CONFLICT
    assert full.message == "Event is full"
    assert db.rows_for(3, OPEN_EVENT) == []

    assert svc.unregister_from_event(OPEN_EVENT, "alice@student.local").ok
    assert db.rows_for(1, OPEN_EVENT)[0].status == RegistrationStatus.CANCELLED
    assert db.active_count(OPEN_EVENT) == 1

    again = svc.register_for_event(OPEN_EVENT, "carol@student.local", now=fixed_now)
    assert again.ok
    assert len(db.rows_for(3, OPEN_EVENT)) == 1
    assert db.active_count(OPEN_EVENT) == 2


def test_cancel_then_reregister_reuses_the_same_row(container, db, fixed_now):
    svc = container.registration_service

    first = svc.register_for_event(UNLIMITED_EVENT, "alice@student.local", "v1", now=fixed_now).unwrap()
    svc.unregister_from_event(UNLIMITED_EVENT, "alice@student.local").unwrap()

    later = fixed_now + timedelta(hours=2)
    second = svc.register_for_event(UNLIMITED_EVENT, "alice@student.local", "v2", now=later).unwrap()

    rows = db.rows_for(1, UNLIMITED_EVENT)
    assert len(rows) == 1
    assert second.registration_id == first.registration_id
    assert rows[0].status == RegistrationStatus.REGISTERED
    assert rows[0].registered_at == later
    assert rows[0].form_payload == "v2"


def test_duplicate_active_registration_is_a_conflict(container, db, fixed_now):
    svc = container.registration_service
    svc.register_for_event(UNLIMITED_EVENT, "alice@student.local", "form", now=fixed_now).unwrap()
    before = dict(db.registrations)

    result = svc.register_for_event(UNLIMITED_EVENT, "alice@student.local", "other", now=fixed_now)

    assert result.error == ErrorKind.CONFLICT
    assert result.message == "Already registered for this event"
    assert db.registrations == before
    with pytest.raises(ConflictError):
        result.unwrap()


def test_reactivation_respects_capacity(container, db, fixed_now):
    db.add_registration(user_id=1, event_id=OPEN_EVENT, status=RegistrationStatus.CANCELLED)
    db.add_registration(user_id=2, event_id=OPEN_EVENT)
    db.add_registration(user_id=3, event_id=OPEN_EVENT)

    result = container.registration_service.register_for_event(OPEN_EVENT, "alice@student.local", now=fixed_now)

    assert result.error == ErrorKind.CONFLICT
    assert db.rows_for(1, OPEN_EVENT)[0].status == RegistrationStatus.CANCELLED
    assert db.active_count(OPEN_EVENT) == 2


@pytest.mark.parametrize(
    "event_id, kind, message",
    [
        (FUTURE_EVENT, ErrorKind.INVALID_STATE, "Registration period has not started yet"),
        (PAST_EVENT, ErrorKind.INVALID_STATE, "Registration period has ended"),
        (999, ErrorKind.NOT_FOUND, "Event not found: 999"),
    ],
)
def test_registration_window_and_missing_event(container, db, fixed_now, event_id, kind, message):
    result = container.registration_service.register_for_event(event_id, "alice@student.local", now=fixed_now)

    assert result.error == kind
    assert result.message == message
    assert db.rows_for(1, event_id) == []


def test_registration_window_bounds_are_inclusive(container, db, fixed_now):
    db.events[10] = Event(
        event_id=10, title="Edge", start_date=fixed_now, end_date=fixed_now, max_participants=None, owner_id=900
    )
    assert container.registration_service.register_for_event(10, "alice@student.local", now=fixed_now).ok


def test_unknown_caller_is_unauthorized(container, repos, fixed_now):
    result = container.registration_service.register_for_event(OPEN_EVENT, "ghost@nowhere", now=fixed_now)

    assert result.error == ErrorKind.UNAUTHORIZED
    _, _, _, transactions = repos
    assert transactions.rollbacks == 1
    assert transactions.commits == 0


def test_registration_runs_in_one_transaction_with_event_lock(container, repos, fixed_now):
    _, events, _, transactions = repos

    container.registration_service.register_for_event(OPEN_EVENT, "alice@student.local", now=fixed_now).unwrap()

    assert events.locked == [OPEN_EVENT]
    assert transactions.commits == 1
    assert transactions.rollbacks == 0


def test_persistence_failure_rolls_back_and_propagates(container, db, repos, fixed_now):
    _, _, registrations, transactions = repos
    db.add_registration(user_id=1, event_id=UNLIMITED_EVENT, status=RegistrationStatus.CANCELLED)
    before = dict(db.registrations)
    registrations.fail_on_write = RuntimeError("connection lost")

    with pytest.raises(RuntimeError):
        container.registration_service.register_for_event(UNLIMITED_EVENT, "alice@student.local", now=fixed_now)

    assert transactions.rollbacks == 1
    assert db.registrations == before


def test_oversized_form_payload_is_rejected(container, db, fixed_now):
    result = container.registration_service.register_for_event(
        UNLIMITED_EVENT, "alice@student.local", "x" * 100001, now=fixed_now
    )
    assert result.error == ErrorKind.VALIDATION
    assert db.rows_for(1, UNLIMITED_EVENT) == []


def test_unregister_without_registration_is_not_found(container):
    result = container.registration_service.unregister_from_event(OPEN_EVENT, "alice@student.local")
    assert result.error == ErrorKind.NOT_FOUND
    assert result.message == "No active registration found"


def test_unregister_twice_is_not_found(container, db):
    db.add_registration(user_id=1, event_id=OPEN_EVENT)
    svc = container.registration_service

    assert svc.unregister_from_event(OPEN_EVENT, "alice@student.local").ok
    assert svc.unregister_from_event(OPEN_EVENT, "alice@student.local").error == ErrorKind.NOT_FOUND


def test_unregister_unknown_caller_is_unauthorized(container):
    result = container.registration_service.unregister_from_event(OPEN_EVENT, "ghost@nowhere")
    assert result.error == ErrorKind.UNAUTHORIZED


def test_concurrent_registrations_never_exceed_capacity(container, db, fixed_now):
    db.events[OPEN_EVENT] = Event(
        event_id=OPEN_EVENT,
        title="Welcome Party",
        start_date=fixed_now - timedelta(days=1),
        end_date=None,
        max_participants=3,
        owner_id=900,
    )
    emails = []
    for i in range(20):
        emails.append(f"user{i}@student.local")
        db.add_user(10 + i, emails[-1])

    svc = container.registration_service
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda e: svc.register_for_event(OPEN_EVENT, e, now=fixed_now), emails))

    assert sum(1 for r in results if r.ok) == 3
    assert all(r.error == ErrorKind.CONFLICT for r in results if not r.ok)
    assert db.active_count(OPEN_EVENT) == 3


def test_get_event_registrations_lists_rows_and_active_count(container, db):
    db.add_registration(user_id=1, event_id=OPEN_EVENT)
    db.add_registration(user_id=2, event_id=OPEN_EVENT, status=RegistrationStatus.CANCELLED)

    data = container.registration_service.get_event_registrations(OPEN_EVENT).unwrap()

    assert data.event.event_id == OPEN_EVENT
    assert len(data.rows) == 2
    assert data.active_count == 1
    assert container.registration_service.is_registered(OPEN_EVENT, "alice@student.local")
    assert not container.registration_service.is_registered(OPEN_EVENT, "bob@student.local")
    assert not container.registration_service.is_registered(OPEN_EVENT, "ghost@nowhere")


def test_get_event_registrations_missing_event(container):
    assert container.registration_service.get_event_registrations(999).error == ErrorKind.NOT_FOUND


def test_unregister_keeps_attendance_recorded_after_the_read(container, db, repos, fixed_now, monkeypatch):
    _, _, registrations, _ = repos
    reg = db.add_registration(user_id=1, event_id=OPEN_EVENT)
    find = registrations.find_by_event_and_user

    def find_then_validate(event_id, user_id):
        stale = find(event_id, user_id)
        container.attendance_service.validate_attendance(
            OPEN_EVENT, reg.registration_id, AttendanceStatus.PRESENT, "member@esn.local", now=fixed_now
        ).unwrap()
        return stale

    monkeypatch.setattr(registrations, "find_by_event_and_user", find_then_validate)

    assert container.registration_service.unregister_from_event(OPEN_EVENT, "alice@student.local").ok

    stored = db.registrations[reg.registration_id]
    assert stored.status == RegistrationStatus.CANCELLED
    assert stored.attendance.status == AttendanceStatus.PRESENT
    assert stored.attendance.validated_by == 900


def test_unregister_losing_a_race_with_another_cancel_is_not_found(container, db, repos, monkeypatch):
    _, _, registrations, _ = repos
    reg = db.add_registration(user_id=1, event_id=OPEN_EVENT)
    find = registrations.find_by_event_and_user

    def find_then_cancel(event_id, user_id):
        stale = find(event_id, user_id)
        registrations.cancel(reg.registration_id)
        return stale

    monkeypatch.setattr(registrations, "find_by_event_and_user", find_then_cancel)

    result = container.registration_service.unregister_from_event(OPEN_EVENT, "alice@student.local")

    assert result.error == ErrorKind.NOT_FOUND
    assert db.registrations[reg.registration_id].status == RegistrationStatus.CANCELLED


def test_reactivation_of_a_row_already_active_is_a_conflict(container, db, repos, fixed_now, monkeypatch):
    _, _, registrations, transactions = repos
    reg = db.add_registration(user_id=1, event_id=UNLIMITED_EVENT, status=RegistrationStatus.CANCELLED)
    find = registrations.find_by_event_and_user

    def find_then_reactivate(event_id, user_id):
        stale = find(event_id, user_id)
        db.registrations[reg.registration_id] = replace(stale, status=RegistrationStatus.REGISTERED)
        return stale

    monkeypatch.setattr(registrations, "find_by_event_and_user", find_then_reactivate)

    result = container.registration_service.register_for_event(
        UNLIMITED_EVENT, "alice@student.local", "late", now=fixed_now
    )

    assert result.error == ErrorKind.CONFLICT
    assert transactions.rollbacks == 1


def test_user_registrations_include_cancelled_rows_newest_event_first(container, db):
    db.add_registration(user_id=1, event_id=OPEN_EVENT, attendance_status=AttendanceStatus.PRESENT)
    db.add_registration(user_id=1, event_id=FUTURE_EVENT, status=RegistrationStatus.CANCELLED)
    db.add_registration(user_id=1, event_id=PAST_EVENT)
    db.add_registration(user_id=2, event_id=UNLIMITED_EVENT)

    items = container.registration_service.get_user_registrations("alice@student.local").unwrap()

    assert [i.event_title for i in items] == ["Ski Trip", "Welcome Party", "Old Dinner"]
    assert items[0].registration.status == RegistrationStatus.CANCELLED
    assert items[1].registration.attendance.status == AttendanceStatus.PRESENT


def test_user_registrations_for_unknown_caller(container):
    result = container.registration_service.get_user_registrations("ghost@nowhere")
    assert result.error == ErrorKind.UNAUTHORIZED


def test_registration_flags_cover_every_requested_event(container, db, repos):
    db.add_registration(user_id=1, event_id=OPEN_EVENT)
    db.add_registration(user_id=1, event_id=UNLIMITED_EVENT, status=RegistrationStatus.CANCELLED)
    db.add_registration(user_id=2, event_id=FUTURE_EVENT)
    svc = container.registration_service

    flags = svc.registration_flags("alice@student.local", [OPEN_EVENT, UNLIMITED_EVENT, FUTURE_EVENT, 999])

    assert flags == {OPEN_EVENT: True, UNLIMITED_EVENT: False, FUTURE_EVENT: False, 999: False}
    assert svc.registration_flags("ghost@nowhere", [OPEN_EVENT]) == {OPEN_EVENT: False}
    assert svc.registration_flags("alice@student.local", []) == {}
