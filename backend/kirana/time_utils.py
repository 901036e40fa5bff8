from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
import time


def now_millis() -> int:
    """Wall-clock 'now' as epoch milliseconds (the stored date format)."""
    return int(time.time() * 1000)


def from_millis(millis: int) -> datetime:
    """Epoch milliseconds -> local, naive datetime."""
    return datetime.fromtimestamp(millis / 1000)


def format_display_time(millis: Optional[int] = None) -> str:
    """
    Display string stored next to a transaction date, e.g. "07:45 PM".

    None -> current time.
    """
    if millis is None:
        millis = now_millis()
    return from_millis(millis).strftime("%I:%M %p")


def to_utc_z(millis: Optional[int]) -> Optional[str]:
    """
    Serializes epoch millis to ISO-8601 with trailing 'Z'.
    """
    if millis is None:
        return None
    dt = datetime.fromtimestamp(millis / 1000, tz=timezone.utc).replace(microsecond=0)
    return dt.isoformat().replace("+00:00", "Z")
