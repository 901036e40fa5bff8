# Overview: LedgerStore, the single entry point to the embedded store (writes, reads, live queries).

from __future__ import annotations

import logging
import weakref
from typing import Any, Callable

from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from . import schema
from .errors import translate_db_error
from .services.coordinator import AtomicResult, AtomicUnit, TransactionCoordinator
from .services.invalidation import InvalidationTracker
from .services.statements import StatementCache
from .services.subscriptions import Query, Subscription

logger = logging.getLogger(__name__)


class LedgerStore:
    """
    Wires the write path to the live-query path.

    commit -> coordinator reports touched tables -> tracker schedules the
    affected subscriptions -> each re-reads and emits if its result changed.
    """

    def __init__(
        self,
        engine: Engine,
        *,
        executor=None,
        refresh_workers: int = 4,
        coalesce_window: float = 0.0,
        subscription_buffer: int = 64,
        retry_attempts: int = 3,
        retry_backoff: float = 0.05,
    ):
        schema.check_schema_version(engine)
        self.engine = engine
        self.statements = StatementCache()
        self.coordinator = TransactionCoordinator(
            engine,
            self.statements,
            attempts=retry_attempts,
            backoff_base=retry_backoff,
        )
        self.tracker = InvalidationTracker(
            executor, max_workers=refresh_workers, coalesce_window=coalesce_window,
        )
        self._subscription_buffer = subscription_buffer
        self.coordinator.add_commit_listener(self.tracker.notify)
        self._subscriptions: "weakref.WeakSet[Subscription]" = weakref.WeakSet()
        # One shared connection (in-memory SQLite): a reader would see the
        # writer's open unit, so reads queue behind writes instead.
        self._serialize_reads = isinstance(engine.pool, StaticPool)
        self._closed = False

    def run_atomic(self, work: Callable[[AtomicUnit], Any]) -> AtomicResult:
        return self.coordinator.run_atomic(work)

    def fetch(self, query: Query) -> Any:
        """One-shot read of `query` against the last committed state."""
        if self._serialize_reads:
            with self.coordinator.write_lock:
                return self._read(query)
        return self._read(query)

    def _read(self, query: Query) -> Any:
        try:
            with Session(self.engine) as session:
                with session.begin():
                    return query.fetch(session)
        except DBAPIError as exc:
            raise translate_db_error(exc) from exc

    def subscribe(self, query: Query) -> Subscription:
        if self._closed:
            raise RuntimeError("store is closed")
        subscription = Subscription(query, self.fetch, self.tracker, max_pending=self._subscription_buffer)
        self._subscriptions.add(subscription)
        return subscription

    def cancel(self, subscription: Subscription) -> bool:
        return subscription.cancel()

    def live_subscription_count(self) -> int:
        return self.tracker.registration_count()

    def close(self, wait: bool = True) -> None:
        if self._closed:
            return
        self._closed = True
        for subscription in list(self._subscriptions):
            subscription.cancel()
        self.coordinator.remove_commit_listener(self.tracker.notify)
        self.tracker.close(wait=wait)
        logger.info("ledger store closed")
