"""The Snapshot aggregate — everything one refresh cycle loads and derives."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

from cgmview.domains.glucose.domain_logic.readings import MBG, SGV, Calibration


@dataclass
class Snapshot:
    """Mutable per-refresh view of a patient's monitoring data.

    ``last_updated`` is fixed once at the start of a refresh and every query
    window of that refresh derives from it. One instance must not be
    refreshed by two cycles at the same time.
    """

    last_updated: int = 0

    # Loaded
    mbgs: list[MBG] = field(default_factory=list)
    sgvs: list[SGV] = field(default_factory=list)
    cals: list[Calibration] = field(default_factory=list)
    treatments: list[dict[str, Any]] = field(default_factory=list)
    profiles: list[dict[str, Any]] = field(default_factory=list)
    devicestatus: list[dict[str, Any]] = field(default_factory=list)
    last_profile_from_switch: str | None = None

    # Derived by treatment processing
    sitechange_treatments: list[dict[str, Any]] = field(default_factory=list)
    insulinchange_treatments: list[dict[str, Any]] = field(default_factory=list)
    battery_treatments: list[dict[str, Any]] = field(default_factory=list)
    sensor_treatments: list[dict[str, Any]] = field(default_factory=list)
    profile_treatments: list[dict[str, Any]] = field(default_factory=list)
    combobolus_treatments: list[dict[str, Any]] = field(default_factory=list)
    tempbasal_treatments: list[dict[str, Any]] = field(default_factory=list)
    temp_target_treatments: list[dict[str, Any]] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        """Name and length of every non-empty list field, in declaration order."""
        result: dict[str, int] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, list) and value:
                result[f.name] = len(value)
        return result

    def summary(self) -> str:
        """``name:length`` pairs for the non-empty lists, comma separated."""
        return ", ".join(f"{name}:{n}" for name, n in self.counts().items())

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready rendering: readings as dicts, record ids as strings."""
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in ("mbgs", "sgvs", "cals"):
                value = [reading.to_dict() for reading in value]
            elif isinstance(value, list):
                value = [_plain(doc) for doc in value]
            data[f.name] = value
        return data


def _plain(document: dict[str, Any]) -> dict[str, Any]:
    if "_id" not in document or isinstance(document["_id"], (str, dict)):
        return document
    return {**document, "_id": str(document["_id"])}
