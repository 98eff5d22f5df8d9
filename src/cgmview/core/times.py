"""Epoch-millisecond time helpers shared by the loaders and record sources."""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Any

ONE_MINUTE = 60_000
ONE_HOUR = 60 * ONE_MINUTE
ONE_DAY = 24 * ONE_HOUR
TWO_DAYS = 2 * ONE_DAY

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def now_mills() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def to_iso(mills: int) -> str:
    """Format epoch milliseconds as a UTC ISO-8601 string with a ``Z`` suffix."""
    dt = _EPOCH + timedelta(milliseconds=mills)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_mills(value: Any) -> int | None:
    """Parse an ISO-8601 timestamp into epoch milliseconds.

    Naive timestamps are taken as UTC. Returns None for anything that
    does not parse.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return (dt - _EPOCH) // timedelta(milliseconds=1)
