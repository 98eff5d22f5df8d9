"""Device status normalization."""

from __future__ import annotations

from typing import Any, Iterable

from cgmview.core.times import parse_mills

LEGACY_BATTERY_FIELD = "uploaderBattery"


def normalize_status(record: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``record`` with ``mills`` set and legacy fields nested.

    A top-level ``uploaderBattery`` moves to ``uploader.battery``. Other
    ``uploader`` keys already present are kept.
    """
    status = dict(record)
    status["mills"] = parse_mills(status.get("created_at"))
    if LEGACY_BATTERY_FIELD in status:
        uploader = dict(status.get("uploader") or {})
        uploader["battery"] = status.pop(LEGACY_BATTERY_FIELD)
        status["uploader"] = uploader
    return status


def normalize_device_statuses(records: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Normalize newest-first query results and return them oldest-first."""
    normalized = [normalize_status(r) for r in records if isinstance(r, dict)]
    normalized.reverse()
    return normalized
