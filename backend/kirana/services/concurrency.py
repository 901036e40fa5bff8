# Overview: Retry policy for write units that lose the race for the store's write lock.

from __future__ import annotations

import logging
import time

from ..errors import ConcurrentWriteConflict

logger = logging.getLogger(__name__)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.05):
    """
    Execute a whole write unit with retry on lock contention.

    Only ConcurrentWriteConflict is retried; the unit has already rolled back
    when it reaches here, so re-running it from the top is safe. Any other
    error (constraint, I/O) propagates on the first failure.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except ConcurrentWriteConflict as exc:
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            delay = backoff_base * (2 ** attempt)
            logger.warning(
                "write conflict (attempt %s/%s), retrying in %.3fs: %s",
                attempt + 1, attempts, delay, exc,
            )
            time.sleep(delay)
    if last_exc:
        raise last_exc
