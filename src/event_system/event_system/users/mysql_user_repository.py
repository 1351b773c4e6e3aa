from __future__ import annotations

from typing import Any, Dict, Optional

from ..core.enums import StudentType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone
from .model import User
from .repository import UserRepository

_SELECT_USER = """
    SELECT u.user_id, u.email, u.first_name, u.last_name, u.student_type, r.role_name
    FROM users u
    LEFT JOIN roles r ON r.role_id = u.role_id
"""


def _student_type(value: Any) -> Optional[StudentType]:
    try:
        return StudentType(value) if value else None
    except ValueError:
        return None


def row_to_user(row: Dict[str, Any]) -> User:
    return User(
        user_id=int(row["user_id"]),
        email=row["email"],
        first_name=row.get("first_name") or "",
        last_name=row.get("last_name") or "",
        student_type=_student_type(row.get("student_type")),
        role_name=row.get("role_name"),
    )


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, user_id: int) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT_USER + " WHERE u.user_id=%s", (int(user_id),))
            row = fetchone(cur)
            return row_to_user(row) if row else None

    def get_by_email(self, email: str) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT_USER + " WHERE u.email=%s", (email.strip(),))
            row = fetchone(cur)
            return row_to_user(row) if row else None
