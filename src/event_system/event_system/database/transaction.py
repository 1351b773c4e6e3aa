from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional, Protocol

from ..core.constants import DEFAULT_ISOLATION_LEVEL
from .connection import DatabaseConnection


class TransactionManager(Protocol):
    """Explicit transaction boundary shared by the repositories."""

    def begin(self) -> None:
        raise NotImplementedError

    def commit(self) -> None:
        raise NotImplementedError

    def rollback(self) -> None:
        raise NotImplementedError

    def transaction(self):
        raise NotImplementedError


class MySQLTransactionManager(TransactionManager):
    def __init__(self, conn_factory: DatabaseConnection, *, isolation_level: Optional[str] = DEFAULT_ISOLATION_LEVEL):
        self._conn_factory = conn_factory
        self._isolation_level = isolation_level

    def begin(self) -> None:
        conn = self._conn_factory.connect()
        try:
            conn.start_transaction(isolation_level=self._isolation_level)
            self._conn_factory.bind(conn)
        except Exception:
            conn.close()
            raise

    def commit(self) -> None:
        conn = self._conn_factory.unbind()
        if conn is None:
            return
        try:
            conn.commit()
        finally:
            conn.close()

    def rollback(self) -> None:
        conn = self._conn_factory.unbind()
        if conn is None:
            return
        try:
            conn.rollback()
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Commit when the block succeeds, roll back and re-raise otherwise."""
        self.begin()
        try:
            yield
        except BaseException:
            self.rollback()
            raise
        self.commit()
