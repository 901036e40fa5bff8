"""
Kirana schema registry (authoritative)

- Tables are declared once as models (kirana.models); this module exposes them
  by name so the write path and live queries refer to tables, not SQL text.
- Foreign-key delete actions drive invalidation: deleting parents also touches
  every child table whose rows the engine cascades or nulls out.
- One schema version. Stamped in PRAGMA user_version; any other non-zero
  version is refused.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from sqlalchemy import Table, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError

from .errors import StoreUnavailable, translate_db_error
from .extensions import db
from . import models  # noqa: F401  (registers tables on db.metadata)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

ITEMS = "items"
PARTIES = "parties"
TRANSACTIONS = "transactions"
TRANSACTION_ITEMS = "transaction_items"
REMINDERS = "reminders"

ALL_TABLES = frozenset({ITEMS, PARTIES, TRANSACTIONS, TRANSACTION_ITEMS, REMINDERS})


class DeleteDependent(NamedTuple):
    table: str
    column: str
    ondelete: str


def table(name: str) -> Table:
    if name not in ALL_TABLES:
        raise ValueError(f"unknown table {name!r}")
    return db.metadata.tables[name]


def delete_dependents(name: str) -> tuple[DeleteDependent, ...]:
    """
    Child columns the engine rewrites when rows of `name` are deleted.

    Only CASCADE and SET NULL references are reported; a plain reference
    blocks the delete instead and never changes other tables.
    """
    found = []
    for child_name in sorted(ALL_TABLES):
        for fk in table(child_name).foreign_keys:
            if fk.column.table.name != name:
                continue
            action = (fk.ondelete or "").upper()
            if action in ("CASCADE", "SET NULL"):
                found.append(DeleteDependent(child_name, fk.parent.name, action))
    return tuple(found)


def install_sqlite_pragmas(engine: Engine) -> None:
    """
    Make SQLite behave like the store the ledger expects.

    - foreign keys enforced (CASCADE / SET NULL need it)
    - WAL so readers keep reading the last commit while a unit is open
    - pysqlite's implicit transaction handling replaced by an explicit BEGIN,
      so every SQLAlchemy transaction is exactly one SQLite transaction
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def read_schema_version(engine: Engine) -> int:
    if engine.dialect.name != "sqlite":
        return SCHEMA_VERSION
    try:
        with engine.connect() as conn:
            return int(conn.execute(text("PRAGMA user_version")).scalar() or 0)
    except DBAPIError as exc:
        raise translate_db_error(exc) from exc


def check_schema_version(engine: Engine) -> int:
    version = read_schema_version(engine)
    if version not in (0, SCHEMA_VERSION):
        raise StoreUnavailable(
            f"database schema version {version} is not supported (expected {SCHEMA_VERSION})",
            details={"found": version, "expected": SCHEMA_VERSION},
        )
    return version


def ensure_schema(engine: Engine) -> None:
    """Create missing tables and stamp the schema version. Idempotent."""
    check_schema_version(engine)
    db.metadata.create_all(engine)
    if engine.dialect.name == "sqlite":
        with engine.begin() as conn:
            conn.exec_driver_sql(f"PRAGMA user_version = {SCHEMA_VERSION}")
    logger.info("schema ready (version %s)", SCHEMA_VERSION)


def drop_schema(engine: Engine) -> None:
    db.metadata.drop_all(engine)
    if engine.dialect.name == "sqlite":
        with engine.begin() as conn:
            conn.exec_driver_sql("PRAGMA user_version = 0")
