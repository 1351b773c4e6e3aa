from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.constants import ADMIN_ROLE_NAME
from ..core.enums import StudentType


@dataclass(frozen=True)
class User:
    """Domain entity: User as seen by the registration core.

    Note: plain data object (no DB access code).
    """

    user_id: int
    email: str
    first_name: str
    last_name: str
    student_type: Optional[StudentType]
    role_name: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def can_validate_attendance(self) -> bool:
        """ESN members and admins may record attendance outcomes."""
        return self.student_type == StudentType.ESN_MEMBER or self.role_name == ADMIN_ROLE_NAME
