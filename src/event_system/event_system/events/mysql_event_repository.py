from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from ..core.enums import AttendanceStatus, RegistrationStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Event, EventActivity
from .repository import EventRepository

_SELECT_EVENT = """
    SELECT event_id, title, location, start_date, end_date, max_participants, user_id
    FROM events
    WHERE event_id=%s
"""


def row_to_event(row: Dict[str, Any]) -> Event:
    capacity = row.get("max_participants")
    return Event(
        event_id=int(row["event_id"]),
        title=row["title"],
        start_date=row["start_date"],
        end_date=row.get("end_date"),
        max_participants=int(capacity) if capacity is not None else None,
        owner_id=int(row["user_id"]),
        location=row.get("location"),
    )


class MySQLEventRepository(EventRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, event_id: int) -> Optional[Event]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT_EVENT, (int(event_id),))
            row = fetchone(cur)
            return row_to_event(row) if row else None

    def get_by_id_for_update(self, event_id: int) -> Optional[Event]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT_EVENT + " FOR UPDATE", (int(event_id),))
            row = fetchone(cur)
            return row_to_event(row) if row else None

    def count_active_registrations(self, event_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COUNT(*) AS cnt
                FROM event_registrations
                WHERE event_id=%s AND status=%s
                """,
                (int(event_id), RegistrationStatus.REGISTERED.value),
            )
            row = fetchone(cur)
            return int(row["cnt"]) if row else 0

    def top_by_registrations(self, limit: int) -> Sequence[EventActivity]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT e.event_id, e.title, e.location, e.start_date, e.end_date, e.max_participants, e.user_id,
                       COUNT(er.registration_id) AS registered,
                       COALESCE(SUM(er.attendance_status=%s), 0) AS present
                FROM events e
                LEFT JOIN event_registrations er ON er.event_id = e.event_id AND er.status=%s
                GROUP BY e.event_id, e.title, e.location, e.start_date, e.end_date, e.max_participants, e.user_id
                ORDER BY registered DESC, e.event_id ASC
                LIMIT %s
                """,
                (AttendanceStatus.PRESENT.value, RegistrationStatus.REGISTERED.value, int(limit)),
            )
            return [
                EventActivity(event=row_to_event(r), registered=int(r["registered"]), present=int(r["present"]))
                for r in fetchall(cur)
            ]
