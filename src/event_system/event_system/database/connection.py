from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import mysql.connector
from mysql.connector.constants import ClientFlag


@dataclass(frozen=True)
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str


def config_from_settings(db_config: Mapping[str, Any]) -> DBConfig:
    """Build a ``DBConfig`` from the ``DB_CONFIG`` dict of a settings module."""
    return DBConfig(
        host=str(db_config.get("host", "localhost")),
        port=int(db_config.get("port", 3306)),
        user=str(db_config.get("user", "root")),
        password=str(db_config.get("password") or ""),
        database=str(db_config.get("database", "event_system")),
    )


class DatabaseConnection:
    """Process-wide MySQL connection factory.

    Repositories open a short-lived connection per call. A transaction
    manager may bind one connection to the current thread; while it is bound,
    ``db_cursor`` hands that connection out instead of opening a new one.
    """

    _instance: Optional["DatabaseConnection"] = None

    def __init__(self, config: DBConfig):
        self._config = config
        self._bound = threading.local()

    @classmethod
    def get_instance(cls, config: DBConfig) -> "DatabaseConnection":
        if cls._instance is None:
            cls._instance = cls(config)
        return cls._instance

    def connect(self):
        cfg = self._config
        return mysql.connector.connect(
            host=cfg.host,
            port=cfg.port,
            user=cfg.user,
            password=cfg.password,
            database=cfg.database,
            autocommit=False,
            # rowcount reports matched rows, not changed rows.
            client_flags=[ClientFlag.FOUND_ROWS],
        )

    @property
    def active(self) -> Any:
        """Connection bound to this thread by an open transaction, or None."""
        return getattr(self._bound, "conn", None)

    def bind(self, conn: Any) -> None:
        if self.active is not None:
            raise RuntimeError("A transaction is already open on this thread")
        self._bound.conn = conn

    def unbind(self) -> Any:
        conn, self._bound.conn = self.active, None
        return conn
