from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

import mysql.connector

from ..core.enums import AttendanceStatus, RegistrationStatus
from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import DUPLICATE_KEY_ERRNO, db_cursor, fetchall, fetchone, in_clause
from .model import Attendance, EventRegistration, NewRegistration, RegistrationRow, UserRegistration
from .repository import RegistrationRepository

_COLUMNS = """
    er.registration_id, er.user_id, er.event_id, er.status, er.registered_at, er.form_payload,
    er.attendance_status, er.attendance_validated_at, er.attendance_validated_by
"""

# The status guards live in the WHERE clause so a write never resurrects or
# mutates a row whose status changed after it was read.
_SET_ATTENDANCE = """
    UPDATE event_registrations
    SET attendance_status=%s, attendance_validated_at=%s, attendance_validated_by=%s
    WHERE registration_id=%s AND status='registered'
"""

_CLEAR_ATTENDANCE = """
    UPDATE event_registrations
    SET attendance_status=NULL, attendance_validated_at=NULL, attendance_validated_by=NULL
    WHERE registration_id=%s
"""

_REACTIVATE = """
    UPDATE event_registrations
    SET status='registered', registered_at=%s, form_payload=%s
    WHERE registration_id=%s AND status<>'registered'
"""

_CANCEL = """
    UPDATE event_registrations
    SET status='cancelled'
    WHERE registration_id=%s AND status<>'cancelled'
"""


def row_to_registration(r: Dict[str, Any]) -> EventRegistration:
    outcome = r.get("attendance_status")
    validated_by = r.get("attendance_validated_by")
    return EventRegistration(
        registration_id=int(r["registration_id"]),
        user_id=int(r["user_id"]),
        event_id=int(r["event_id"]),
        status=RegistrationStatus(r["status"]),
        registered_at=r.get("registered_at"),
        form_payload=r.get("form_payload") or "",
        attendance=Attendance(
            status=AttendanceStatus(outcome) if outcome else None,
            validated_at=r.get("attendance_validated_at"),
            validated_by=int(validated_by) if validated_by is not None else None,
        ),
    )


def _attendance_params(registration_id: int, att: Attendance) -> tuple:
    return (
        att.status.value if att.status else None,
        att.validated_at,
        att.validated_by,
        int(registration_id),
    )


def _group_counts(rows) -> Dict[Optional[AttendanceStatus], int]:
    out: Dict[Optional[AttendanceStatus], int] = {}
    for r in rows:
        key = AttendanceStatus(r["attendance_status"]) if r.get("attendance_status") else None
        out[key] = out.get(key, 0) + int(r["cnt"])
    return out


class MySQLRegistrationRepository(RegistrationRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def find_by_event_and_user(self, event_id: int, user_id: int) -> Optional[EventRegistration]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM event_registrations er WHERE er.event_id=%s AND er.user_id=%s",
                (int(event_id), int(user_id)),
            )
            r = fetchone(cur)
            return row_to_registration(r) if r else None

    def get_by_id(self, registration_id: int) -> Optional[EventRegistration]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM event_registrations er WHERE er.registration_id=%s",
                (int(registration_id),),
            )
            r = fetchone(cur)
            return row_to_registration(r) if r else None

    def get_by_ids(self, registration_ids: Iterable[int]) -> Mapping[int, EventRegistration]:
        ids = sorted({int(i) for i in registration_ids})
        if not ids:
            return {}

        with db_cursor(self._conn_factory) as (_, cur):
            # FOR UPDATE is a no-op outside a transaction (autocommit statement).
            cur.execute(
                f"SELECT {_COLUMNS} FROM event_registrations er WHERE er.registration_id IN ({in_clause(ids)}) FOR UPDATE",
                tuple(ids),
            )
            out: dict[int, EventRegistration] = {}
            for r in fetchall(cur):
                reg = row_to_registration(r)
                out[reg.registration_id] = reg
            return out

    def insert(self, registration: NewRegistration) -> int:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO event_registrations(user_id, event_id, status, registered_at, form_payload)
                    VALUES(%s,%s,%s,%s,%s)
                    """,
                    (
                        int(registration.user_id),
                        int(registration.event_id),
                        RegistrationStatus.REGISTERED.value,
                        registration.registered_at,
                        registration.form_payload,
                    ),
                )
                return int(cur.lastrowid)
        except mysql.connector.IntegrityError as e:
            if e.errno == DUPLICATE_KEY_ERRNO:
                raise ConflictError("Already registered for this event") from e
            raise

    def find_for_user_and_events(self, user_id: int, event_ids: Iterable[int]) -> Mapping[int, EventRegistration]:
        ids = sorted({int(i) for i in event_ids})
        if not ids:
            return {}

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM event_registrations er WHERE er.user_id=%s AND er.event_id IN ({in_clause(ids)})",
                (int(user_id), *ids),
            )
            return {reg.event_id: reg for reg in map(row_to_registration, fetchall(cur))}

    def reactivate(self, registration_id: int, *, registered_at: datetime, form_payload: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_REACTIVATE, (registered_at, form_payload, int(registration_id)))
            return cur.rowcount > 0

    def cancel(self, registration_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_CANCEL, (int(registration_id),))
            return cur.rowcount > 0

    def update_attendance(self, registration_id: int, attendance: Attendance) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SET_ATTENDANCE, _attendance_params(registration_id, attendance))
            return cur.rowcount > 0

    def update_attendance_many(self, changes: Sequence[Tuple[int, Attendance]]) -> int:
        if not changes:
            return 0
        with db_cursor(self._conn_factory) as (_, cur):
            cur.executemany(_SET_ATTENDANCE, [_attendance_params(rid, att) for rid, att in changes])
            return int(cur.rowcount)

    def clear_attendance(self, registration_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_CLEAR_ATTENDANCE, (int(registration_id),))
            return cur.rowcount > 0

    def list_for_event(self, event_id: int, *, active_only: bool = False) -> Sequence[RegistrationRow]:
        clauses = ["er.event_id=%s"]
        params: list[object] = [int(event_id)]
        if active_only:
            clauses.append("er.status=%s")
            params.append(RegistrationStatus.REGISTERED.value)

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS},
                       u.email, u.first_name, u.last_name,
                       v.first_name AS validator_first_name, v.last_name AS validator_last_name
                FROM event_registrations er
                JOIN users u ON u.user_id = er.user_id
                LEFT JOIN users v ON v.user_id = er.attendance_validated_by
                WHERE {where}
                ORDER BY u.last_name ASC, u.first_name ASC
                """,
                tuple(params),
            )
            rows = fetchall(cur)
            out: list[RegistrationRow] = []
            for r in rows:
                validator = None
                if r.get("validator_first_name") is not None:
                    validator = f"{r['validator_first_name']} {r.get('validator_last_name') or ''}".strip()
                out.append(
                    RegistrationRow(
                        registration=row_to_registration(r),
                        email=r["email"],
                        first_name=r.get("first_name") or "",
                        last_name=r.get("last_name") or "",
                        validator_name=validator,
                    )
                )
            return out

    def list_for_user(self, user_id: int) -> Sequence[UserRegistration]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS},
                       e.title AS event_title, e.start_date AS event_start_date,
                       e.end_date AS event_end_date, e.location AS event_location
                FROM event_registrations er
                JOIN events e ON e.event_id = er.event_id
                WHERE er.user_id=%s
                ORDER BY e.start_date DESC, er.registration_id DESC
                """,
                (int(user_id),),
            )
            return [
                UserRegistration(
                    registration=row_to_registration(r),
                    event_title=r["event_title"],
                    event_start_date=r["event_start_date"],
                    event_end_date=r.get("event_end_date"),
                    event_location=r.get("event_location"),
                )
                for r in fetchall(cur)
            ]

    def list_active_since(self, since: datetime) -> Sequence[EventRegistration]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM event_registrations er
                WHERE er.status=%s AND er.registered_at >= %s
                """,
                (RegistrationStatus.REGISTERED.value, since),
            )
            return [row_to_registration(r) for r in fetchall(cur)]

    def count_attendance_by_status(self, event_id: int) -> Mapping[Optional[AttendanceStatus], int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT attendance_status, COUNT(*) AS cnt
                FROM event_registrations
                WHERE event_id=%s AND status=%s
                GROUP BY attendance_status
                """,
                (int(event_id), RegistrationStatus.REGISTERED.value),
            )
            return _group_counts(fetchall(cur))

    def count_all_attendance_by_status(self) -> Mapping[Optional[AttendanceStatus], int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT attendance_status, COUNT(*) AS cnt
                FROM event_registrations
                WHERE status=%s
                GROUP BY attendance_status
                """,
                (RegistrationStatus.REGISTERED.value,),
            )
            return _group_counts(fetchall(cur))
