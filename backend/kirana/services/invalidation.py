"""
Kirana invalidation tracker
===========================
Maps committed table sets to the live queries that read those tables.

Rules:
- A registration declares its watched tables once, up front.
- notify(touched) schedules every live registration whose watch-set
  intersects `touched`. Nothing else is ever scheduled.
- Coalescing: a registration is either idle, scheduled, or running. Further
  notifications while scheduled/running only mark it dirty. A scheduled
  drain first waits out the coalesce window, so commits landing inside it
  fold into a single re-run.
- A registration never runs concurrently with itself. Different
  registrations may run in parallel on the executor.
- Unregistering is idempotent; a pending run for an unregistered entry
  becomes a no-op.
- A refresh that raises is logged and contained; it never reaches the
  committing thread or other registrations.
"""

from __future__ import annotations

import itertools
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Iterable

from .. import schema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionHandle:
    id: int
    tables: frozenset


class _Registration:
    def __init__(self, handle: SubscriptionHandle, refresh: Callable[[], None], window: float = 0.0):
        self.handle = handle
        self.refresh = refresh
        self.window = window
        self.active = True
        self.dirty = False
        self.scheduled = False
        self._lock = Lock()

    def invalidate(self) -> bool:
        """Mark dirty; True when the caller must schedule a drain."""
        with self._lock:
            if not self.active:
                return False
            self.dirty = True
            if self.scheduled:
                return False
            self.scheduled = True
            return True

    def deactivate(self) -> bool:
        with self._lock:
            was_active = self.active
            self.active = False
            self.dirty = False
            return was_active

    def drain(self) -> None:
        while True:
            with self._lock:
                if not self.active or not self.dirty:
                    self.scheduled = False
                    return
            if self.window > 0:
                time.sleep(self.window)
            with self._lock:
                if not self.active:
                    self.scheduled = False
                    return
                self.dirty = False
            try:
                self.refresh()
            except Exception:
                logger.exception("refresh for subscription %s failed", self.handle.id)


class InvalidationTracker:
    def __init__(self, executor=None, *, max_workers: int = 4, coalesce_window: float = 0.0):
        if coalesce_window < 0:
            raise ValueError("coalesce_window must be >= 0")
        self._window = coalesce_window
        if executor is None:
            executor = ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix="kirana-refresh",
            )
            self._owns_executor = True
        else:
            self._owns_executor = False
        self._executor = executor
        self._registrations: dict[int, _Registration] = {}
        self._ids = itertools.count(1)
        self._lock = Lock()
        self._closed = False

    def register(self, refresh: Callable[[], None], watched_tables: Iterable[str]) -> SubscriptionHandle:
        tables = frozenset(watched_tables)
        if not tables:
            raise ValueError("a subscription must watch at least one table")
        for name in tables:
            schema.table(name)

        with self._lock:
            if self._closed:
                raise RuntimeError("invalidation tracker is closed")
            handle = SubscriptionHandle(next(self._ids), tables)
            self._registrations[handle.id] = _Registration(handle, refresh, self._window)

        logger.debug("registered subscription %s watching %s", handle.id, sorted(tables))
        return handle

    def unregister(self, handle: SubscriptionHandle) -> bool:
        with self._lock:
            registration = self._registrations.pop(handle.id, None)
        if registration is None:
            return False
        registration.deactivate()
        logger.debug("unregistered subscription %s", handle.id)
        return True

    def notify(self, touched_tables: Iterable[str]) -> int:
        """Schedule every affected registration; returns how many were newly scheduled."""
        touched = frozenset(touched_tables)
        if not touched:
            return 0
        with self._lock:
            affected = [
                reg for reg in self._registrations.values()
                if reg.handle.tables & touched
            ]
        scheduled = 0
        for reg in affected:
            if reg.invalidate():
                self._executor.submit(reg.drain)
                scheduled += 1
        return scheduled

    def registration_count(self) -> int:
        with self._lock:
            return len(self._registrations)

    def close(self, wait: bool = True) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            registrations = list(self._registrations.values())
            self._registrations.clear()
        for reg in registrations:
            reg.deactivate()
        if self._owns_executor:
            self._executor.shutdown(wait=wait)
