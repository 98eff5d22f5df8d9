"""Treatment merging and profile-switch resolution.

Each treatment query pass is normalized on its own (identity check, ``mills``
from ``created_at``, stale temp-basal filter) and the passes are then unioned
by identity. Union is order-independent, so the three concurrent passes can
finish in any order.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Iterable, Sequence

from cgmview.core.dedup import KeyedSet, unique_by
from cgmview.core.storage.models import RecordId
from cgmview.core.times import ONE_DAY, ONE_HOUR, parse_mills

logger = logging.getLogger(__name__)

TEMP_BASAL = "Temp Basal"
PROFILE_SWITCH = "Profile Switch"
SENSOR_AND_INSULIN_EVENTS = ["Sensor Start", "Sensor Change", "Insulin Change"]

# Temp basals older than this (relative to the refresh) are not displayed
TEMP_BASAL_MAX_AGE = ONE_DAY + ONE_HOUR


def has_identity(treatment: Any) -> bool:
    """True if the treatment carries a structured ``_id``.

    Bare strings, numbers and missing ids are placeholders and do not count.
    """
    if not isinstance(treatment, Mapping):
        return False
    return isinstance(treatment.get("_id"), (RecordId, Mapping))


def identity_key(treatment: Mapping[str, Any]) -> str:
    """Stable string key for a treatment's identity."""
    record_id = treatment["_id"]
    if isinstance(record_id, Mapping):
        if "$oid" in record_id:
            return str(record_id["$oid"])
        return repr(sorted(record_id.items(), key=lambda kv: str(kv[0])))
    return str(record_id)


def is_stale_temp_basal(treatment: Mapping[str, Any], last_updated: int) -> bool:
    event_type = treatment.get("eventType")
    if not isinstance(event_type, str) or TEMP_BASAL not in event_type:
        return False
    return treatment["mills"] <= last_updated - TEMP_BASAL_MAX_AGE


def normalize_treatments(
    records: Iterable[Any],
    last_updated: int,
) -> list[dict[str, Any]]:
    """Normalize one query pass.

    Drops records without a structured identity or a parseable
    ``created_at``, stamps ``mills`` on copies of the survivors, and drops
    temp basals older than a day and an hour before ``last_updated``.
    """
    normalized: list[dict[str, Any]] = []
    skipped = 0
    for record in records:
        if not has_identity(record):
            skipped += 1
            continue
        mills = parse_mills(record.get("created_at"))
        if mills is None:
            skipped += 1
            continue
        treatment = {**record, "mills": mills}
        if is_stale_temp_basal(treatment, last_updated):
            continue
        normalized.append(treatment)

    if skipped:
        logger.debug("Skipped %d malformed treatment records", skipped)
    return normalized


def union_passes(passes: Iterable[Sequence[dict[str, Any]]]) -> list[dict[str, Any]]:
    """Union several normalized passes by identity, first seen wins.

    Records already present keep their place; new identities are appended in
    pass order. Re-adding a pass that is already included changes nothing.
    """
    merged: KeyedSet[dict[str, Any]] = KeyedSet(identity_key)
    for batch in passes:
        merged.extend(batch)
    return merged.items()


def finalize_treatments(treatments: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Deduplicate by identity (stable) and sort ascending by ``mills``."""
    unique = unique_by(treatments, identity_key)
    return sorted(unique, key=lambda t: t["mills"])


def resolve_profile_switch(
    switches: Iterable[Any],
    now: int,
) -> str | None:
    """Return the ``profile`` of the newest switch not in the future.

    ``switches`` must already be ordered newest-first; the first record whose
    ``created_at`` is at or before ``now`` wins, with no further tie-break.
    """
    for switch in switches:
        if not isinstance(switch, Mapping):
            continue
        mills = parse_mills(switch.get("created_at"))
        if mills is not None and mills <= now:
            return switch.get("profile")
    return None
