# Overview: Cache of parameterized write statements keyed by operation shape.

from __future__ import annotations

from threading import Lock
from typing import Callable, Hashable

from sqlalchemy import bindparam, delete, insert, literal, select, update
from sqlalchemy.sql import Executable

from .. import schema


class StatementCache:
    """
    Builds each write statement once per shape and hands back the same object.

    Reusing the construct keeps SQLAlchemy's compiled-statement cache hot, so a
    thousand stock adjustments compile one UPDATE. Shapes:

    - ("insert", table, columns)
    - ("set", table, columns)           UPDATE ... WHERE id = :b_id
    - ("set_many", table, columns)      UPDATE ... WHERE id IN :b_ids
    - ("delta", table, column)          UPDATE col = col + :b_delta WHERE id = :b_id
    - ("delete_many", table)            DELETE ... WHERE id IN :b_ids
    - ("references", table, column)     SELECT 1 ... WHERE column IN :b_ids LIMIT 1
    - ("exists", table)                 SELECT 1 ... WHERE id = :b_id
    """

    def __init__(self):
        self._statements: dict[Hashable, Executable] = {}
        self._lock = Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._statements)

    def clear(self) -> None:
        with self._lock:
            self._statements.clear()
            self.hits = 0
            self.misses = 0

    def _get(self, key: Hashable, build: Callable[[], Executable]) -> Executable:
        with self._lock:
            stmt = self._statements.get(key)
            if stmt is not None:
                self.hits += 1
                return stmt
            self.misses += 1
            stmt = build()
            self._statements[key] = stmt
            return stmt

    def insert(self, table_name: str, columns: tuple[str, ...]) -> Executable:
        def build():
            return insert(schema.table(table_name))
        return self._get(("insert", table_name, columns), build)

    def set_by_id(self, table_name: str, columns: tuple[str, ...]) -> Executable:
        def build():
            t = schema.table(table_name)
            return (
                update(t)
                .where(t.c.id == bindparam("b_id"))
                .values({col: bindparam(f"v_{col}") for col in columns})
            )
        return self._get(("set", table_name, columns), build)

    def set_many(self, table_name: str, columns: tuple[str, ...]) -> Executable:
        def build():
            t = schema.table(table_name)
            return (
                update(t)
                .where(t.c.id.in_(bindparam("b_ids", expanding=True)))
                .values({col: bindparam(f"v_{col}") for col in columns})
            )
        return self._get(("set_many", table_name, columns), build)

    def delta(self, table_name: str, column: str) -> Executable:
        def build():
            t = schema.table(table_name)
            return (
                update(t)
                .where(t.c.id == bindparam("b_id"))
                .values({column: t.c[column] + bindparam("b_delta")})
            )
        return self._get(("delta", table_name, column), build)

    def delete_many(self, table_name: str) -> Executable:
        def build():
            t = schema.table(table_name)
            return delete(t).where(t.c.id.in_(bindparam("b_ids", expanding=True)))
        return self._get(("delete_many", table_name), build)

    def references(self, table_name: str, column: str) -> Executable:
        def build():
            t = schema.table(table_name)
            return (
                select(literal(1))
                .select_from(t)
                .where(t.c[column].in_(bindparam("b_ids", expanding=True)))
                .limit(1)
            )
        return self._get(("references", table_name, column), build)

    def exists(self, table_name: str) -> Executable:
        def build():
            t = schema.table(table_name)
            return select(literal(1)).select_from(t).where(t.c.id == bindparam("b_id"))
        return self._get(("exists", table_name), build)

    def fetch_one(self, table_name: str) -> Executable:
        def build():
            t = schema.table(table_name)
            return select(t).where(t.c.id == bindparam("b_id"))
        return self._get(("fetch_one", table_name), build)
