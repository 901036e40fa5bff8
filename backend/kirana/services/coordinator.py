# Overview: Atomic write units; serializes writers and reports the tables each commit touched.

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError

from .. import schema
from ..errors import translate_db_error
from .concurrency import run_with_retry
from .statements import StatementCache

"""
Kirana write-path invariants (authoritative)

- One writer at a time per store: every unit runs under the coordinator's
  write lock. Readers never take it (except on shared in-memory connections).
- A unit is one database transaction. Any exception inside it rolls back
  every write it made; nothing partial is ever committed.
- Touched tables are recorded by the unit from the writes it actually made
  (rowcount > 0), plus child tables the engine rewrote through CASCADE /
  SET NULL. Listeners hear about them once, after commit, never on rollback.
- A unit nested on the same thread joins the outer one.
"""

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AtomicResult:
    value: Any
    touched: frozenset


class AtomicUnit:
    """Write handle for a single open transaction."""

    def __init__(self, connection: Connection, statements: StatementCache):
        self._conn = connection
        self._statements = statements
        self._touched: set[str] = set()

    @property
    def connection(self) -> Connection:
        return self._conn

    @property
    def touched(self) -> frozenset:
        return frozenset(self._touched)

    def insert(self, table_name: str, values: dict) -> int:
        """Insert one row; returns the store-assigned id."""
        columns = tuple(sorted(values))
        stmt = self._statements.insert(table_name, columns)
        result = self._conn.execute(stmt, values)
        self._touched.add(table_name)
        return int(result.inserted_primary_key[0])

    def insert_many(self, table_name: str, rows: Iterable[dict]) -> list[int]:
        return [self.insert(table_name, row) for row in rows]

    def update(self, table_name: str, row_id: int, values: dict) -> int:
        if not values:
            return 0
        columns = tuple(sorted(values))
        stmt = self._statements.set_by_id(table_name, columns)
        params = {f"v_{col}": values[col] for col in columns}
        params["b_id"] = row_id
        return self._record(table_name, self._conn.execute(stmt, params).rowcount)

    def update_many(self, table_name: str, row_ids: Iterable[int], values: dict) -> int:
        ids = sorted(set(row_ids))
        if not ids or not values:
            return 0
        columns = tuple(sorted(values))
        stmt = self._statements.set_many(table_name, columns)
        params = {f"v_{col}": values[col] for col in columns}
        params["b_ids"] = ids
        return self._record(table_name, self._conn.execute(stmt, params).rowcount)

    def apply_delta(self, table_name: str, row_id: int, column: str, delta) -> int:
        """column = column + delta for one row; returns rows matched (0 or 1)."""
        stmt = self._statements.delta(table_name, column)
        result = self._conn.execute(stmt, {"b_id": row_id, "b_delta": delta})
        return self._record(table_name, result.rowcount)

    def delete_many(self, table_name: str, row_ids: Iterable[int]) -> int:
        ids = sorted(set(row_ids))
        if not ids:
            return 0
        # Probe before deleting: afterwards the cascaded rows are gone.
        rewritten = [
            dep.table
            for dep in schema.delete_dependents(table_name)
            if self._conn.execute(
                self._statements.references(dep.table, dep.column), {"b_ids": ids}
            ).first() is not None
        ]
        count = self._conn.execute(self._statements.delete_many(table_name), {"b_ids": ids}).rowcount
        if count:
            self._touched.add(table_name)
            self._touched.update(rewritten)
        return count

    def exists(self, table_name: str, row_id: int) -> bool:
        stmt = self._statements.exists(table_name)
        return self._conn.execute(stmt, {"b_id": row_id}).first() is not None

    def fetch_one(self, table_name: str, row_id: int) -> Optional[dict]:
        row = self._conn.execute(self._statements.fetch_one(table_name), {"b_id": row_id}).first()
        return dict(row._mapping) if row is not None else None

    def _record(self, table_name: str, rowcount: int) -> int:
        if rowcount:
            self._touched.add(table_name)
        return rowcount


class TransactionCoordinator:
    def __init__(
        self,
        engine: Engine,
        statements: StatementCache,
        *,
        attempts: int = 3,
        backoff_base: float = 0.05,
    ):
        self._engine = engine
        self._statements = statements
        self._attempts = attempts
        self._backoff_base = backoff_base
        self._write_lock = threading.RLock()
        self._local = threading.local()
        self._listeners: list[Callable[[frozenset], None]] = []

    @property
    def write_lock(self) -> threading.RLock:
        return self._write_lock

    def add_commit_listener(self, listener: Callable[[frozenset], None]) -> None:
        self._listeners.append(listener)

    def remove_commit_listener(self, listener: Callable[[frozenset], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def current_unit(self) -> Optional[AtomicUnit]:
        return getattr(self._local, "unit", None)

    def run_atomic(self, work: Callable[[AtomicUnit], Any]) -> AtomicResult:
        """
        Run `work(unit)` as one all-or-nothing unit.

        Returns the work's value and the set of tables the commit touched.
        Driver errors surface as StoreError subclasses; any other exception
        raised by `work` propagates unchanged after the rollback.
        """
        outer = self.current_unit()
        if outer is not None:
            return AtomicResult(work(outer), outer.touched)

        def _op():
            with self._write_lock:
                try:
                    with self._engine.connect() as conn:
                        with conn.begin():
                            unit = AtomicUnit(conn, self._statements)
                            self._local.unit = unit
                            try:
                                value = work(unit)
                            finally:
                                self._local.unit = None
                except DBAPIError as exc:
                    raise translate_db_error(exc) from exc
            return AtomicResult(value, unit.touched)

        result = run_with_retry(_op, attempts=self._attempts, backoff_base=self._backoff_base)
        if result.touched:
            logger.debug("commit touched %s", sorted(result.touched))
            self._publish(result.touched)
        return result

    def _publish(self, touched: frozenset) -> None:
        for listener in list(self._listeners):
            try:
                listener(touched)
            except Exception:
                logger.exception("commit listener %r failed", listener)
