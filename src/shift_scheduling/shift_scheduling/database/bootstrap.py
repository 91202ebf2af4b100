"""Apply ``database/schema.sql`` and ``database/seed.sql`` to a MySQL server."""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterator, Mapping

import mysql.connector

from .connection import DBConfig

logger = logging.getLogger(__name__)

# A statement ends at ';' outside of quoted literals.
_TOKEN = re.compile(r"'(?:[^'\\]|\\.)*'|\"(?:[^\"\\]|\\.)*\"|;|[^'\";]+", re.S)
_DB_SELECTION = re.compile(r"(?im)^\s*(CREATE\s+DATABASE|USE)\b[^;]*;\s*$")


def _open(config: DBConfig, *, with_database: bool = True):
    return mysql.connector.connect(**config.connect_kwargs(with_database=with_database), use_pure=True)


def iter_sql_statements(sql: str) -> Iterator[str]:
    """Yield the statements of a script. ``--`` comment lines are dropped."""
    body = "\n".join(ln for ln in sql.splitlines() if not ln.lstrip().startswith("--"))
    parts: list[str] = []
    for token in _TOKEN.findall(body):
        if token != ";":
            parts.append(token)
            continue
        stmt = "".join(parts).strip()
        parts = []
        if stmt:
            yield stmt
    tail = "".join(parts).strip()
    if tail:
        yield tail


def _execute_script(config: DBConfig, path: str | Path) -> int:
    # The target database comes from settings, not from the script.
    sql = _DB_SELECTION.sub("", Path(path).read_text(encoding="utf-8"))
    conn = _open(config)
    try:
        cur = conn.cursor()
        n = 0
        for stmt in iter_sql_statements(sql):
            cur.execute(stmt)
            n += 1
        conn.commit()
        return n
    finally:
        conn.close()


def ensure_database_exists(db_config: Mapping) -> None:
    config = DBConfig.from_mapping(db_config)
    conn = _open(config, with_database=False)
    try:
        conn.cursor().execute(
            f"CREATE DATABASE IF NOT EXISTS `{config.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: Mapping, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)
    n = _execute_script(DBConfig.from_mapping(db_config), schema_path)
    logger.info("Applied %s schema statements from %s", n, schema_path)


def apply_seed_sql(db_config: Mapping, *, seed_path: str | Path) -> None:
    n = _execute_script(DBConfig.from_mapping(db_config), seed_path)
    logger.info("Applied %s seed statements from %s", n, seed_path)


def list_tables(db_config: Mapping) -> list[str]:
    conn = _open(DBConfig.from_mapping(db_config))
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return sorted(row[0] for row in cur.fetchall())
    finally:
        conn.close()
