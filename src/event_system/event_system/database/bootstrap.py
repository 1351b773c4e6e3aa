"""Apply ``database/schema.sql`` and ``database/seed.sql`` to the configured MySQL server."""

from __future__ import annotations

import re
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List

import mysql.connector

from ..core.logging import get_logger
from .connection import DBConfig, config_from_settings

log = get_logger("database.bootstrap")

# Quoted strings and line comments are single tokens, so a ';' inside them never splits.
_TOKEN = re.compile(
    r"""
      '(?:[^'\\]|\\.)*'
    | "(?:[^"\\]|\\.)*"
    | `[^`]*`
    | --[^\n]*
    | ;
    | [^'"`;-]+
    | -
    """,
    re.VERBOSE | re.DOTALL,
)

# The script targets whatever database the settings name.
_DB_SELECTION = re.compile(r"^(CREATE\s+DATABASE|USE)\b", re.IGNORECASE)


def iter_sql_statements(sql: str) -> Iterator[str]:
    """Yield the statements of a script, without ``--`` comments or trailing ``;``."""
    current: List[str] = []
    for token in _TOKEN.findall(sql):
        if token.startswith("--"):
            continue
        if token == ";":
            stmt = "".join(current).strip()
            current = []
            if stmt:
                yield stmt
            continue
        current.append(token)

    tail = "".join(current).strip()
    if tail:
        yield tail


def script_statements(sql: str) -> List[str]:
    """Statements to run against the configured database (``CREATE DATABASE``/``USE`` dropped)."""
    return [stmt for stmt in iter_sql_statements(sql) if not _DB_SELECTION.match(stmt)]


@contextmanager
def _server(config: DBConfig, *, with_database: bool = True):
    kwargs = dict(host=config.host, port=config.port, user=config.user, password=config.password, use_pure=True)
    if with_database:
        kwargs["database"] = config.database
    conn = mysql.connector.connect(**kwargs)
    try:
        yield conn
    finally:
        conn.close()


def ensure_database_exists(db_config: dict) -> None:
    config = config_from_settings(db_config)
    with _server(config, with_database=False) as conn:
        conn.cursor().execute(
            f"CREATE DATABASE IF NOT EXISTS `{config.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()


def run_script(db_config: dict, path: str | Path) -> int:
    statements = script_statements(Path(path).read_text(encoding="utf-8"))
    with _server(config_from_settings(db_config)) as conn:
        cur = conn.cursor()
        for stmt in statements:
            cur.execute(stmt)
        conn.commit()
    log.info("Applied %s (%d statements)", path, len(statements))
    return len(statements)


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)
    run_script(db_config, schema_path)


def apply_seed_sql(db_config: dict, *, seed_path: str | Path) -> None:
    run_script(db_config, seed_path)


def list_tables(db_config: dict) -> list[str]:
    with _server(config_from_settings(db_config)) as conn:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
