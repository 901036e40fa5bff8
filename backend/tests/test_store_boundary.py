# Overview: Pytest coverage for schema versioning, pragmas, error translation, statement cache and the tracker.

import sqlite3
import unittest

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError

from kirana import create_app, get_store, init_store, schema
from kirana.errors import (
    ConcurrentWriteConflict,
    ConstraintViolation,
    StoreUnavailable,
    translate_db_error,
)
from kirana.extensions import db
from kirana.services import queries
from kirana.services.concurrency import run_with_retry
from kirana.services.invalidation import InvalidationTracker
from kirana.services.inventory_service import adjust_stock
from kirana.services.statements import StatementCache


class TestSchema:
    def test_version_is_stamped_and_pragmas_applied(self, app):
        with app.app_context():
            assert schema.read_schema_version(db.engine) == schema.SCHEMA_VERSION
            with db.engine.connect() as conn:
                assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
                assert conn.execute(text("PRAGMA journal_mode")).scalar() == "wal"

    def test_ensure_schema_is_idempotent(self, app, store, dal):
        with app.app_context():
            schema.ensure_schema(db.engine)
        assert store.fetch(queries.item_by_id(dal)) is not None

    def test_unsupported_version_is_refused(self, make_app):
        app = make_app()
        with app.app_context():
            with db.engine.begin() as conn:
                conn.exec_driver_sql("PRAGMA user_version = 7")

            with pytest.raises(StoreUnavailable) as excinfo:
                init_store(app)
            assert excinfo.value.details == {"found": 7, "expected": schema.SCHEMA_VERSION}

            with pytest.raises(StoreUnavailable):
                schema.ensure_schema(db.engine)

            # leave a closable store behind for teardown
            with db.engine.begin() as conn:
                conn.exec_driver_sql(f"PRAGMA user_version = {schema.SCHEMA_VERSION}")

    def test_unopenable_database_is_unavailable(self, tmp_path):
        missing = tmp_path / "no-such-dir" / "kirana.sqlite3"
        with pytest.raises(StoreUnavailable):
            create_app({'TESTING': True, 'SQLALCHEMY_DATABASE_URI': f"sqlite:///{missing}"})

    def test_delete_dependents_from_foreign_keys(self):
        deps = {(d.table, d.column, d.ondelete) for d in schema.delete_dependents(schema.PARTIES)}
        assert deps == {
            (schema.ITEMS, "vendor_id", "SET NULL"),
            (schema.TRANSACTIONS, "customer_id", "SET NULL"),
            (schema.TRANSACTIONS, "vendor_id", "SET NULL"),
        }
        assert schema.delete_dependents(schema.TRANSACTIONS) == (
            schema.DeleteDependent(schema.TRANSACTION_ITEMS, "transaction_id", "CASCADE"),
        )
        assert schema.delete_dependents(schema.REMINDERS) == ()

    def test_unknown_table(self):
        with pytest.raises(ValueError):
            schema.table("widgets")

    def test_in_memory_store_serializes_reads(self, make_app):
        app = make_app(SQLALCHEMY_DATABASE_URI="sqlite://")
        assert get_store(app)._serialize_reads is True


class TestStatementCacheOnStore:
    def test_repeated_shape_reuses_statement(self, store, dal):
        store.statements.clear()

        for _ in range(3):
            adjust_stock(store, item_id=dal, delta=1)

        assert store.statements.misses == 1
        assert store.statements.hits == 2
        assert len(store.statements) == 1


class StatementCacheTests(unittest.TestCase):
    def setUp(self):
        self.cache = StatementCache()

    def test_same_shape_same_object(self):
        first = self.cache.insert(schema.ITEMS, ("name", "price"))
        second = self.cache.insert(schema.ITEMS, ("name", "price"))
        self.assertIs(first, second)
        self.assertEqual((self.cache.hits, self.cache.misses), (1, 1))

    def test_different_shapes_are_distinct(self):
        self.cache.set_by_id(schema.ITEMS, ("name",))
        self.cache.set_by_id(schema.ITEMS, ("name", "price"))
        self.cache.set_many(schema.ITEMS, ("name",))
        self.cache.delta(schema.PARTIES, "balance")
        self.cache.delete_many(schema.PARTIES)
        self.cache.references(schema.ITEMS, "vendor_id")
        self.assertEqual(len(self.cache), 6)
        self.assertEqual(self.cache.hits, 0)

    def test_clear_resets_counters(self):
        self.cache.exists(schema.ITEMS)
        self.cache.exists(schema.ITEMS)
        self.cache.clear()
        self.assertEqual(len(self.cache), 0)
        self.assertEqual((self.cache.hits, self.cache.misses), (0, 0))

    def test_unknown_table_rejected(self):
        with self.assertRaises(ValueError):
            self.cache.exists("widgets")


class ErrorTranslationTests(unittest.TestCase):
    def test_integrity_error_is_constraint_violation(self):
        exc = IntegrityError("INSERT ...", {}, sqlite3.IntegrityError("FOREIGN KEY constraint failed"))
        err = translate_db_error(exc)
        self.assertIsInstance(err, ConstraintViolation)
        self.assertIn("FOREIGN KEY", str(err))

    def test_locked_is_write_conflict(self):
        exc = OperationalError("UPDATE ...", {}, sqlite3.OperationalError("database is locked"))
        self.assertIsInstance(translate_db_error(exc), ConcurrentWriteConflict)

    def test_other_driver_errors_are_unavailable(self):
        exc = OperationalError("SELECT 1", {}, sqlite3.OperationalError("disk I/O error"))
        self.assertIsInstance(translate_db_error(exc), StoreUnavailable)


class RetryTests(unittest.TestCase):
    def test_retries_only_write_conflicts(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ConcurrentWriteConflict("busy")
            return "ok"

        self.assertEqual(run_with_retry(flaky, attempts=3, backoff_base=0), "ok")
        self.assertEqual(len(calls), 3)

    def test_gives_up_after_attempts(self):
        def always_busy():
            raise ConcurrentWriteConflict("busy")

        with self.assertRaises(ConcurrentWriteConflict):
            run_with_retry(always_busy, attempts=2, backoff_base=0)

    def test_other_errors_are_not_retried(self):
        calls = []

        def broken():
            calls.append(1)
            raise StoreUnavailable("disk I/O error")

        with self.assertRaises(StoreUnavailable):
            run_with_retry(broken, attempts=5, backoff_base=0)
        self.assertEqual(len(calls), 1)


class _RecordingExecutor:
    def __init__(self, submitted):
        self.submitted = submitted

    def submit(self, fn):
        self.submitted.append(fn)


class InvalidationTrackerTests(unittest.TestCase):
    def setUp(self):
        self.submitted = []
        self.tracker = InvalidationTracker(_RecordingExecutor(self.submitted))
        self.runs = []

    def test_only_intersecting_registrations_are_scheduled(self):
        self.tracker.register(lambda: self.runs.append("items"), {schema.ITEMS})
        self.tracker.register(lambda: self.runs.append("parties"), {schema.PARTIES})

        self.assertEqual(self.tracker.notify({schema.ITEMS, schema.REMINDERS}), 1)
        for fn in self.submitted:
            fn()
        self.assertEqual(self.runs, ["items"])

    def test_burst_coalesces_into_one_run(self):
        self.tracker.register(lambda: self.runs.append("x"), {schema.ITEMS})
        self.assertEqual(self.tracker.notify({schema.ITEMS}), 1)
        self.assertEqual(self.tracker.notify({schema.ITEMS}), 0)
        self.assertEqual(self.tracker.notify({schema.ITEMS}), 0)
        for fn in self.submitted:
            fn()
        self.assertEqual(self.runs, ["x"])

    def test_unregister_is_idempotent_and_drops_pending_run(self):
        handle = self.tracker.register(lambda: self.runs.append("x"), {schema.ITEMS})
        self.tracker.notify({schema.ITEMS})
        self.assertTrue(self.tracker.unregister(handle))
        self.assertFalse(self.tracker.unregister(handle))
        for fn in self.submitted:
            fn()
        self.assertEqual(self.runs, [])
        self.assertEqual(self.tracker.registration_count(), 0)

    def test_negative_coalesce_window_rejected(self):
        with self.assertRaises(ValueError):
            InvalidationTracker(_RecordingExecutor([]), coalesce_window=-1)

    def test_empty_watch_set_rejected(self):
        with self.assertRaises(ValueError):
            self.tracker.register(lambda: None, set())
