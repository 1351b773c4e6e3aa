from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .attendance.service import AttendanceService
from .core.constants import DEFAULT_ISOLATION_LEVEL
from .core.logging import get_logger
from .database.connection import DatabaseConnection, config_from_settings
from .database.transaction import MySQLTransactionManager, TransactionManager
from .events.mysql_event_repository import MySQLEventRepository
from .events.repository import EventRepository
from .registrations.mysql_registration_repository import MySQLRegistrationRepository
from .registrations.repository import RegistrationRepository
from .registrations.service import RegistrationService
from .statistics.service import StatisticsService
from .users.mysql_user_repository import MySQLUserRepository
from .users.repository import UserRepository


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    users_repo: UserRepository
    events_repo: EventRepository
    registrations_repo: RegistrationRepository
    transactions: TransactionManager

    registration_service: RegistrationService
    attendance_service: AttendanceService
    statistics_service: StatisticsService


def wire_services(
    *,
    users_repo: UserRepository,
    events_repo: EventRepository,
    registrations_repo: RegistrationRepository,
    transactions: TransactionManager,
    conn: Optional[DatabaseConnection] = None,
    logger: Optional[logging.Logger] = None,
) -> Container:
    """Assemble services over any repository implementations (MySQL or in-memory)."""

    def child(name: str) -> logging.Logger:
        return logger.getChild(name) if logger else get_logger(name)

    return Container(
        conn=conn,
        users_repo=users_repo,
        events_repo=events_repo,
        registrations_repo=registrations_repo,
        transactions=transactions,
        registration_service=RegistrationService(
            events_repo, registrations_repo, users_repo, transactions, logger=child("registrations")
        ),
        attendance_service=AttendanceService(
            events_repo, registrations_repo, users_repo, transactions, logger=child("attendance")
        ),
        statistics_service=StatisticsService(
            events_repo, registrations_repo, users_repo, logger=child("statistics")
        ),
    )


def build_container(
    *,
    db_config: dict,
    isolation_level: str = DEFAULT_ISOLATION_LEVEL,
    logger: Optional[logging.Logger] = None,
) -> Container:
    conn = DatabaseConnection.get_instance(config_from_settings(db_config))

    return wire_services(
        users_repo=MySQLUserRepository(conn),
        events_repo=MySQLEventRepository(conn),
        registrations_repo=MySQLRegistrationRepository(conn),
        transactions=MySQLTransactionManager(conn, isolation_level=isolation_level),
        conn=conn,
        logger=logger,
    )
