# Overview: Live query descriptors and subscriptions (initial value + cancellable update channel).

from __future__ import annotations

import logging
import queue
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Callable, Iterator, Optional

from sqlalchemy.orm import Session

from ..errors import QueryFailed, SubscriptionClosed

logger = logging.getLogger(__name__)

_CLOSED = object()


@dataclass(frozen=True)
class Query:
    """
    A read plus the tables it reads.

    `fetch` runs inside one read transaction and must return plain values
    (dicts, lists, scalars) so two results compare by value.
    """
    name: str
    tables: frozenset
    fetch: Callable[[Session], Any] = field(compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, "tables", frozenset(self.tables))


class _Failure:
    __slots__ = ("error",)

    def __init__(self, error: QueryFailed):
        self.error = error


class Subscription:
    """
    Long-lived view of one Query.

    - `initial` is computed synchronously when the subscription is created.
    - Every relevant commit re-runs the query off the writer's thread; a
      result equal to the last emitted one is dropped.
    - Updates arrive in order: emission happens under a per-subscription lock
      and each re-run reads a state no older than the previous one.
    - cancel() is idempotent and stops delivery immediately, including for a
      re-run that is already queued.
    - At most `max_pending` updates wait in the channel; when it is full the
      oldest one is dropped. Observers still see every update.
    """

    def __init__(self, query: Query, reader: Callable[[Query], Any], tracker, *, max_pending: int = 64):
        if max_pending < 1:
            raise ValueError("max_pending must be >= 1")
        self.query = query
        self._reader = reader
        self._tracker = tracker
        # One extra slot so the close marker always fits
        self._updates: queue.Queue = queue.Queue(maxsize=max_pending + 1)
        self._max_pending = max_pending
        self._emit_lock = RLock()
        self._observers: list[tuple[Callable[[Any], None], Optional[Callable[[QueryFailed], None]]]] = []
        self._cancelled = False
        self.emitted = 0
        self.dropped = 0
        self.last_error: Optional[QueryFailed] = None

        # Register before the first read so no commit can slip between them;
        # a refresh racing the initial read waits on the emit lock.
        with self._emit_lock:
            self._handle = tracker.register(self._refresh, query.tables)
            try:
                self.initial = reader(query)
            except BaseException:
                tracker.unregister(self._handle)
                raise
            self._latest = self.initial

    @property
    def handle(self):
        return self._handle

    @property
    def latest(self) -> Any:
        with self._emit_lock:
            return self._latest

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def observe(
        self,
        on_next: Callable[[Any], None],
        on_error: Optional[Callable[[QueryFailed], None]] = None,
    ) -> None:
        """Call `on_next` (on the refresh thread) for every update after this point."""
        with self._emit_lock:
            self._observers.append((on_next, on_error))

    def next(self, timeout: Optional[float] = None) -> Any:
        """
        Block for the next update.

        Raises QueryFailed if that re-run failed, SubscriptionClosed once
        cancelled and drained, TimeoutError when `timeout` elapses.
        """
        try:
            item = self._updates.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError(f"no update for {self.query.name!r} within {timeout}s") from None
        if item is _CLOSED:
            self._updates.put_nowait(_CLOSED)
            raise SubscriptionClosed(f"subscription to {self.query.name!r} is cancelled")
        if isinstance(item, _Failure):
            raise item.error
        return item

    def drain(self) -> list:
        """Every update queued so far, without blocking. Failures are skipped."""
        items = []
        while True:
            try:
                item = self._updates.get_nowait()
            except queue.Empty:
                return items
            if item is _CLOSED:
                self._updates.put_nowait(_CLOSED)
                return items
            if not isinstance(item, _Failure):
                items.append(item)

    def __iter__(self) -> Iterator[Any]:
        while True:
            try:
                yield self.next()
            except SubscriptionClosed:
                return

    def cancel(self) -> bool:
        with self._emit_lock:
            if self._cancelled:
                return False
            self._cancelled = True
            self._observers.clear()
        self._tracker.unregister(self._handle)
        self._updates.put_nowait(_CLOSED)
        return True

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()

    def _refresh(self) -> None:
        with self._emit_lock:
            if self._cancelled:
                return
            try:
                result = self._reader(self.query)
            except Exception as exc:
                failure = QueryFailed(self.query.name, exc)
                logger.warning("live query %r failed: %s", self.query.name, exc)
                self.last_error = failure
                self._push(_Failure(failure))
                for _, on_error in list(self._observers):
                    if on_error is not None:
                        self._call_observer(on_error, failure)
                return
            if self._cancelled or result == self._latest:
                return
            self._latest = result
            self.emitted += 1
            self._push(result)
            for on_next, _ in list(self._observers):
                self._call_observer(on_next, result)

    def _call_observer(self, callback, value) -> None:
        try:
            callback(value)
        except Exception:
            logger.exception("observer of %r raised", self.query.name)

    def _push(self, item) -> None:
        # Called under the emit lock, so this is the only producer.
        while self._updates.qsize() >= self._max_pending:
            try:
                self._updates.get_nowait()
            except queue.Empty:
                break
            self.dropped += 1
        self._updates.put_nowait(item)
