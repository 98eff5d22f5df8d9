"""Derive per-kind treatment lists from the finalized treatment list."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from cgmview.domains.glucose.snapshot import Snapshot

logger = logging.getLogger(__name__)

# Snapshot field -> eventType substrings that select into it
TREATMENT_GROUPS: dict[str, tuple[str, ...]] = {
    "sitechange_treatments": ("Site Change",),
    "insulinchange_treatments": ("Insulin Change",),
    "battery_treatments": ("Pump Battery Change",),
    "sensor_treatments": ("Sensor Start", "Sensor Change"),
    "profile_treatments": ("Profile Switch",),
    "combobolus_treatments": ("Combo Bolus",),
    "tempbasal_treatments": ("Temp Basal",),
    "temp_target_treatments": ("Temporary Target",),
}


def _select(treatments: Iterable[dict[str, Any]], markers: tuple[str, ...]) -> list[dict[str, Any]]:
    selected = []
    for treatment in treatments:
        event_type = treatment.get("eventType")
        if isinstance(event_type, str) and any(m in event_type for m in markers):
            selected.append(treatment)
    return sorted(selected, key=lambda t: t["mills"])


def process_treatments(snapshot: Snapshot) -> None:
    """Fill the snapshot's derived treatment lists, each ascending by ``mills``."""
    for field_name, markers in TREATMENT_GROUPS.items():
        setattr(snapshot, field_name, _select(snapshot.treatments, markers))
    logger.debug("Processed %d treatments into derived groups", len(snapshot.treatments))
