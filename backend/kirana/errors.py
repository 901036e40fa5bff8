"""
Kirana store errors
===================
One taxonomy for every failure the data layer surfaces.

- ConstraintViolation: required field missing, bad enum value, foreign-key
  target absent for a non-null reference, rejected input.
- NotFound: single-target mutation aimed at an id that does not exist.
- ConcurrentWriteConflict: the engine reported lock/busy contention. Retried
  internally; only surfaces once retries are exhausted.
- StoreUnavailable: opening or committing a unit failed at the I/O level.
  Never retried.
- QueryFailed: a live query's re-evaluation raised. Delivered to that
  subscription only.
"""

from __future__ import annotations

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError


class StoreError(Exception):
    """Base error for the store."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ConstraintViolation(StoreError):
    """A write was rejected by a constraint or by input validation."""


class NotFound(StoreError):
    """Update/delete aimed at a row that does not exist."""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} {entity_id} not found",
            details={"entity": entity, "id": entity_id},
        )


class ConcurrentWriteConflict(StoreError):
    """The engine could not acquire the write lock in time."""


class StoreUnavailable(StoreError):
    """The underlying store could not be opened, read or committed."""


class QueryFailed(StoreError):
    """Re-evaluating a live query raised."""

    def __init__(self, query_name: str, cause: BaseException):
        self.query_name = query_name
        self.cause = cause
        super().__init__(f"query {query_name!r} failed: {cause}")


class SubscriptionClosed(StoreError):
    """The subscription was cancelled and has no more updates."""


_LOCK_MARKERS = ("database is locked", "database table is locked", "busy")


def is_lock_contention(exc: BaseException) -> bool:
    return isinstance(exc, OperationalError) and any(
        marker in str(exc.orig).lower() for marker in _LOCK_MARKERS
    )


def translate_db_error(exc: DBAPIError) -> StoreError:
    """Map a driver-level error onto the store taxonomy."""
    message = str(exc.orig) if exc.orig is not None else str(exc)
    if isinstance(exc, IntegrityError):
        return ConstraintViolation(message, details={"statement": exc.statement})
    if is_lock_contention(exc):
        return ConcurrentWriteConflict(message)
    return StoreUnavailable(message)
