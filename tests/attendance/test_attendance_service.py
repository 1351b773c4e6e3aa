from __future__ import annotations

import pytest

from src.event_system.event_system.attendance.service import AttendanceItem, parse_attendance_items
from src.event_system.event_system.core.enums import AttendanceStatus, ErrorKind, RegistrationStatus
from src.event_system.event_system.core.exceptions import ValidationError
from tests.fakes import OPEN_EVENT, UNLIMITED_EVENT

ESN = "member@esn.local"
ADMIN = "admin@esn.local"


def test_esn_member_validates_attendance(container, db, fixed_now):
    reg = db.add_registration(user_id=1, event_id=OPEN_EVENT)

    updated = container.attendance_service.validate_attendance(
        OPEN_EVENT, reg.registration_id, AttendanceStatus.PRESENT, ESN, now=fixed_now
    ).unwrap()

    stored = db.registrations[reg.registration_id]
    assert stored == updated
    assert stored.attendance.status == AttendanceStatus.PRESENT
    assert stored.attendance.validated_at == fixed_now
    assert stored.attendance.validated_by == 900


def test_admin_can_validate_and_status_is_parsed_from_text(container, db, fixed_now):
    reg = db.add_registration(user_id=1, event_id=OPEN_EVENT)

    result = container.attendance_service.validate_attendance(
        OPEN_EVENT, reg.registration_id, "Absent", ADMIN, now=fixed_now
    )

    assert result.ok
    assert db.registrations[reg.registration_id].attendance.validated_by == 901
    assert db.registrations[reg.registration_id].attendance.status == AttendanceStatus.ABSENT


@pytest.mark.parametrize(
    "email, message",
    [
        ("alice@student.local", "Only ESN members or Admins can validate attendance"),
        ("ghost@nowhere", "Validator not found"),
    ],
)
def test_non_validators_are_unauthorized(container, db, email, message):
    reg = db.add_registration(user_id=1, event_id=OPEN_EVENT)

    result = container.attendance_service.validate_attendance(
        OPEN_EVENT, reg.registration_id, AttendanceStatus.PRESENT, email
    )

    assert result.error == ErrorKind.UNAUTHORIZED
    assert result.message == message
    assert not db.registrations[reg.registration_id].attendance.is_validated


def test_validate_registration_of_another_event_is_not_found(container, db):
    reg = db.add_registration(user_id=1, event_id=UNLIMITED_EVENT)

    result = container.attendance_service.validate_attendance(
        OPEN_EVENT, reg.registration_id, AttendanceStatus.PRESENT, ESN
    )

    assert result.error == ErrorKind.NOT_FOUND
    assert result.message == f"Registration {reg.registration_id} not found for event {OPEN_EVENT}"


def test_validate_cancelled_registration_is_invalid_state(container, db):
    reg = db.add_registration(user_id=1, event_id=OPEN_EVENT, status=RegistrationStatus.CANCELLED)

    result = container.attendance_service.validate_attendance(
        OPEN_EVENT, reg.registration_id, AttendanceStatus.PRESENT, ESN
    )

    assert result.error == ErrorKind.INVALID_STATE
    assert not db.registrations[reg.registration_id].attendance.is_validated


def test_validate_unknown_status_is_a_validation_error(container, db):
    reg = db.add_registration(user_id=1, event_id=OPEN_EVENT)

    result = container.attendance_service.validate_attendance(OPEN_EVENT, reg.registration_id, "late", ESN)

    assert result.error == ErrorKind.VALIDATION


def test_bulk_counts_only_matching_registrations(container, db, repos, fixed_now):
    _, _, registrations, transactions = repos
    own = [db.add_registration(user_id=uid, event_id=OPEN_EVENT) for uid in (1, 2, 3)]
    foreign = [db.add_registration(user_id=uid, event_id=UNLIMITED_EVENT) for uid in (1, 2)]
    items = [AttendanceItem(r.registration_id, AttendanceStatus.PRESENT) for r in own + foreign]

    count = container.attendance_service.bulk_validate_attendance(OPEN_EVENT, items, ESN, now=fixed_now).unwrap()

    assert count == 3
    assert registrations.batch_lookups == 1
    assert registrations.single_lookups == 0
    assert transactions.commits == 1
    for r in own:
        assert db.registrations[r.registration_id].attendance.status == AttendanceStatus.PRESENT
    for r in foreign:
        assert db.registrations[r.registration_id] == r


def test_bulk_skips_cancelled_and_missing_registrations(container, db, fixed_now):
    active = db.add_registration(user_id=1, event_id=OPEN_EVENT)
    cancelled = db.add_registration(user_id=2, event_id=OPEN_EVENT, status=RegistrationStatus.CANCELLED)
    items = [
        AttendanceItem(active.registration_id, AttendanceStatus.EXCUSED),
        AttendanceItem(cancelled.registration_id, AttendanceStatus.PRESENT),
        AttendanceItem(99999, AttendanceStatus.PRESENT),
    ]

    result = container.attendance_service.bulk_validate_attendance(OPEN_EVENT, items, ESN, now=fixed_now)

    assert result.unwrap() == 1
    assert db.registrations[cancelled.registration_id] == cancelled


def test_bulk_duplicate_ids_are_counted_once_last_status_wins(container, db, fixed_now):
    reg = db.add_registration(user_id=1, event_id=OPEN_EVENT)
    items = [
        AttendanceItem(reg.registration_id, AttendanceStatus.ABSENT),
        AttendanceItem(reg.registration_id, AttendanceStatus.PRESENT),
    ]

    result = container.attendance_service.bulk_validate_attendance(OPEN_EVENT, items, ESN, now=fixed_now)

    assert result.unwrap() == 1
    assert db.registrations[reg.registration_id].attendance.status == AttendanceStatus.PRESENT


def test_bulk_write_failure_rolls_back_the_whole_batch(container, db, repos, fixed_now):
    _, _, registrations, transactions = repos
    regs = [db.add_registration(user_id=uid, event_id=OPEN_EVENT) for uid in (1, 2)]
    before = dict(db.registrations)
    registrations.fail_on_write = RuntimeError("deadlock")

    with pytest.raises(RuntimeError):
        container.attendance_service.bulk_validate_attendance(
            OPEN_EVENT,
            [AttendanceItem(r.registration_id, AttendanceStatus.PRESENT) for r in regs],
            ESN,
            now=fixed_now,
        )

    assert transactions.rollbacks == 1
    assert db.registrations == before


def test_bulk_empty_list_is_a_validation_error(container, repos):
    _, _, registrations, transactions = repos

    result = container.attendance_service.bulk_validate_attendance(OPEN_EVENT, [], ESN)

    assert result.error == ErrorKind.VALIDATION
    assert registrations.batch_lookups == 0
    assert transactions.commits == 0


def test_bulk_requires_a_validator(container, db):
    reg = db.add_registration(user_id=1, event_id=OPEN_EVENT)

    result = container.attendance_service.bulk_validate_attendance(
        OPEN_EVENT, [AttendanceItem(reg.registration_id, AttendanceStatus.PRESENT)], "bob@student.local"
    )

    assert result.error == ErrorKind.UNAUTHORIZED
    assert db.registrations[reg.registration_id] == reg


def test_reset_clears_outcome_timestamp_and_validator(container, db):
    reg = db.add_registration(user_id=1, event_id=OPEN_EVENT, attendance_status=AttendanceStatus.PRESENT)
    assert reg.attendance.is_validated

    assert container.attendance_service.reset_attendance(OPEN_EVENT, reg.registration_id, ESN).unwrap() is True

    attendance = db.registrations[reg.registration_id].attendance
    assert attendance.status is None
    assert attendance.validated_at is None
    assert attendance.validated_by is None


def test_reset_of_unknown_registration_is_not_found(container, db):
    other = db.add_registration(user_id=1, event_id=UNLIMITED_EVENT, attendance_status=AttendanceStatus.ABSENT)

    assert container.attendance_service.reset_attendance(OPEN_EVENT, 99999, ESN).error == ErrorKind.NOT_FOUND
    assert container.attendance_service.reset_attendance(OPEN_EVENT, other.registration_id, ESN).error == (
        ErrorKind.NOT_FOUND
    )
    assert db.registrations[other.registration_id].attendance.is_validated


def test_reset_requires_a_validator(container, db):
    reg = db.add_registration(user_id=1, event_id=OPEN_EVENT, attendance_status=AttendanceStatus.PRESENT)

    result = container.attendance_service.reset_attendance(OPEN_EVENT, reg.registration_id, "alice@student.local")

    assert result.error == ErrorKind.UNAUTHORIZED
    assert db.registrations[reg.registration_id].attendance.is_validated


def test_event_attendance_sheet_lists_active_rows_with_validator_names(container, db):
    db.add_registration(user_id=1, event_id=OPEN_EVENT, attendance_status=AttendanceStatus.PRESENT)
    db.add_registration(user_id=2, event_id=OPEN_EVENT)
    db.add_registration(user_id=3, event_id=OPEN_EVENT, status=RegistrationStatus.CANCELLED)

    sheet = container.attendance_service.get_event_attendance(OPEN_EVENT).unwrap()

    assert [row.email for row in sheet.rows] == ["alice@student.local", "bob@student.local"]
    assert sheet.rows[0].validator_name == "Member Test"
    assert sheet.rows[1].validator_name is None
    assert sheet.stats.total_registered == 2
    assert sheet.stats.present_count == 1


def test_event_attendance_for_missing_event(container):
    assert container.attendance_service.get_event_attendance(999).error == ErrorKind.NOT_FOUND


def test_parse_attendance_items():
    items = parse_attendance_items([{"registration_id": "7", "status": "present"}])
    assert items == [AttendanceItem(7, AttendanceStatus.PRESENT)]

    with pytest.raises(ValidationError):
        parse_attendance_items(["7"])
    with pytest.raises(ValidationError):
        parse_attendance_items([{"registration_id": 0, "status": "present"}])


def test_validate_does_not_revive_a_registration_cancelled_after_the_read(container, db, repos, fixed_now, monkeypatch):
    _, _, registrations, _ = repos
    alice = db.add_registration(user_id=1, event_id=OPEN_EVENT)
    db.add_registration(user_id=2, event_id=OPEN_EVENT)
    read = registrations.get_by_id

    def read_then_seat_changes_hands(registration_id):
        stale = read(registration_id)
        container.registration_service.unregister_from_event(OPEN_EVENT, "alice@student.local").unwrap()
        container.registration_service.register_for_event(OPEN_EVENT, "carol@student.local", now=fixed_now).unwrap()
        return stale

    monkeypatch.setattr(registrations, "get_by_id", read_then_seat_changes_hands)

    result = container.attendance_service.validate_attendance(
        OPEN_EVENT, alice.registration_id, AttendanceStatus.PRESENT, ESN, now=fixed_now
    )

    assert result.error == ErrorKind.INVALID_STATE
    stored = db.registrations[alice.registration_id]
    assert stored.status == RegistrationStatus.CANCELLED
    assert not stored.attendance.is_validated
    assert db.active_count(OPEN_EVENT) == 2


def test_reset_leaves_a_concurrent_cancel_in_place(container, db, repos, monkeypatch):
    _, _, registrations, _ = repos
    reg = db.add_registration(user_id=1, event_id=OPEN_EVENT, attendance_status=AttendanceStatus.PRESENT)
    read = registrations.get_by_id

    def read_then_cancel(registration_id):
        stale = read(registration_id)
        container.registration_service.unregister_from_event(OPEN_EVENT, "alice@student.local").unwrap()
        return stale

    monkeypatch.setattr(registrations, "get_by_id", read_then_cancel)

    assert container.attendance_service.reset_attendance(OPEN_EVENT, reg.registration_id, ESN).unwrap() is True

    stored = db.registrations[reg.registration_id]
    assert stored.status == RegistrationStatus.CANCELLED
    assert stored.attendance.status is None
    assert db.active_count(OPEN_EVENT) == 0
