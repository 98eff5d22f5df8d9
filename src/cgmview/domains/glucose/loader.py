"""Snapshot loader — fans out the windowed queries of one refresh and merges them.

Six loaders run concurrently against the DataContext: entries, three
treatment passes (general, profile switch, sensor/insulin change), the
latest profile, and device status. After all of them have finished, the
treatment passes are unioned, deduplicated and sorted, the curve-fit and
treatment-processing collaborators run, and the per-list counts are logged.

A failed loader never stops its siblings or finalization. It contributes
its default (nothing, or an empty device-status list) and the first failure
in loader order is returned with the result.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from cgmview.core.config.settings import Settings, get_settings
from cgmview.core.storage.models import Query
from cgmview.core.times import ONE_DAY, TWO_DAYS, now_mills, to_iso
from cgmview.domains.glucose.connectors import DataContext
from cgmview.domains.glucose.domain_logic.curve_fit import fit_treatments_to_bg_curve
from cgmview.domains.glucose.domain_logic.devicestatus import normalize_device_statuses
from cgmview.domains.glucose.domain_logic.readings import ClassifiedReadings, classify_entries
from cgmview.domains.glucose.domain_logic.treatment_processing import process_treatments
from cgmview.domains.glucose.domain_logic.treatments import (
    PROFILE_SWITCH,
    SENSOR_AND_INSULIN_EVENTS,
    finalize_treatments,
    normalize_treatments,
    resolve_profile_switch,
    union_passes,
)
from cgmview.domains.glucose.snapshot import Snapshot

logger = logging.getLogger(__name__)

CurveFitter = Callable[[Snapshot, Settings], None]
TreatmentProcessor = Callable[[Snapshot], None]

# Query windows, relative to the refresh's last_updated
TREATMENTS_WINDOW = 8 * ONE_DAY
PROFILE_SWITCH_WINDOW = 12 * 31 * ONE_DAY
SENSOR_AND_INSULIN_WINDOW = 32 * ONE_DAY
DEVICESTATUS_WINDOW = ONE_DAY


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def entries_query(last_updated: int) -> Query:
    return Query(find={"date": {"$gte": last_updated - TWO_DAYS}}, sort={"date": 1})


def treatments_query(last_updated: int) -> Query:
    return Query(
        find={"created_at": {"$gte": to_iso(last_updated - TREATMENTS_WINDOW)}},
        sort={"created_at": 1},
    )


def profile_switch_query(last_updated: int) -> Query:
    return Query(
        find={
            "eventType": {"$eq": PROFILE_SWITCH},
            "created_at": {"$gte": to_iso(last_updated - PROFILE_SWITCH_WINDOW)},
        },
        sort={"created_at": -1},
    )


def sensor_and_insulin_query(last_updated: int) -> Query:
    return Query(
        find={
            "eventType": {"$in": list(SENSOR_AND_INSULIN_EVENTS)},
            "created_at": {"$gte": to_iso(last_updated - SENSOR_AND_INSULIN_WINDOW)},
        },
        sort={"created_at": -1},
    )


def devicestatus_query(last_updated: int, *, advanced: bool) -> Query:
    """Latest day of device status; only the newest record unless ``advanced``."""
    return Query(
        find={"created_at": {"$gte": to_iso(last_updated - DEVICESTATUS_WINDOW)}},
        sort={"created_at": -1},
        count=None if advanced else 1,
    )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class LoadError(Exception):
    """A loader's query failed; wraps the collaborator's exception."""

    def __init__(self, source: str, cause: BaseException) -> None:
        super().__init__(f"{source} load failed: {cause}")
        self.source = source
        self.cause = cause


@dataclass
class RefreshResult:
    """Outcome of one refresh cycle."""

    snapshot: Snapshot
    error: LoadError | None = None
    counts: dict[str, int] = field(default_factory=dict)
    failures: list[LoadError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

class DataLoader:
    """Builds a Snapshot from a DataContext, one refresh at a time.

    Usage::

        loader = DataLoader(sqlite_context(repository), get_settings())
        result = await loader.update()
        result.snapshot.sgvs

    ``clock`` returns epoch milliseconds; it fixes ``last_updated`` at the
    start of each refresh and is read again as "now" when resolving the
    active profile switch.
    """

    def __init__(
        self,
        context: DataContext,
        settings: Settings | None = None,
        *,
        clock: Callable[[], int] = now_mills,
        curve_fitter: CurveFitter = fit_treatments_to_bg_curve,
        treatment_processor: TreatmentProcessor = process_treatments,
    ) -> None:
        self._ctx = context
        self._settings = settings or get_settings()
        self._clock = clock
        self._curve_fitter = curve_fitter
        self._treatment_processor = treatment_processor
        self._lock = asyncio.Lock()

    async def update(self, snapshot: Snapshot | None = None) -> RefreshResult:
        """Run one refresh cycle into ``snapshot`` (a fresh one if omitted).

        Refreshes through the same loader are serialized.
        """
        async with self._lock:
            return await self._refresh(snapshot if snapshot is not None else Snapshot())

    async def _refresh(self, snapshot: Snapshot) -> RefreshResult:
        last_updated = self._clock()
        snapshot.last_updated = last_updated
        snapshot.treatments = []

        names = ("entries", "treatments", "profile_switch", "sensor_insulin", "profile", "devicestatus")
        outcomes = await asyncio.gather(
            self._load_entries(last_updated),
            self._load_treatments(last_updated),
            self._load_profile_switches(last_updated),
            self._load_sensor_and_insulin(last_updated),
            self._load_profile(),
            self._load_devicestatus(last_updated),
            return_exceptions=True,
        )

        failures: list[LoadError] = []
        loaded: dict[str, Any] = {}
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, Exception):
                error = LoadError(name, outcome)
                logger.error("%s", error)
                failures.append(error)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                loaded[name] = outcome

        # Failed loaders leave their snapshot fields untouched, except
        # device status which degrades to an empty list.
        if "entries" in loaded:
            readings: ClassifiedReadings = loaded["entries"]
            snapshot.mbgs = readings.mbgs
            snapshot.sgvs = readings.sgvs
            snapshot.cals = readings.cals
        if "profile_switch" in loaded:
            switch_pass, snapshot.last_profile_from_switch = loaded["profile_switch"]
            loaded["profile_switch"] = switch_pass
        if "profile" in loaded:
            snapshot.profiles = loaded["profile"]
        snapshot.devicestatus = loaded.get("devicestatus", [])

        passes = [loaded.get(name, []) for name in ("treatments", "profile_switch", "sensor_insulin")]
        return self._finalize(snapshot, passes, failures)

    def _finalize(
        self,
        snapshot: Snapshot,
        passes: list[list[dict[str, Any]]],
        failures: list[LoadError],
    ) -> RefreshResult:
        snapshot.treatments = finalize_treatments(union_passes(passes))

        self._curve_fitter(snapshot, self._settings)
        self._treatment_processor(snapshot)

        counts = snapshot.counts()
        logger.info("Load Complete:\n\t%s", snapshot.summary())

        return RefreshResult(
            snapshot=snapshot,
            error=failures[0] if failures else None,
            counts=counts,
            failures=failures,
        )

    # ------------------------------------------------------------------
    # Individual loaders: one query each, no retries
    # ------------------------------------------------------------------

    async def _load_entries(self, last_updated: int) -> ClassifiedReadings:
        results = await self._ctx.entries.list(entries_query(last_updated))
        return classify_entries(results or [])

    async def _load_treatments(self, last_updated: int) -> list[dict[str, Any]]:
        results = await self._ctx.treatments.list(treatments_query(last_updated))
        return normalize_treatments(results or [], last_updated)

    async def _load_profile_switches(
        self, last_updated: int
    ) -> tuple[list[dict[str, Any]], str | None]:
        results = await self._ctx.treatments.list(profile_switch_query(last_updated)) or []
        return (
            normalize_treatments(results, last_updated),
            resolve_profile_switch(results, self._clock()),
        )

    async def _load_sensor_and_insulin(self, last_updated: int) -> list[dict[str, Any]]:
        results = await self._ctx.treatments.list(sensor_and_insulin_query(last_updated))
        return normalize_treatments(results or [], last_updated)

    async def _load_profile(self) -> list[dict[str, Any]]:
        results = await self._ctx.profile.last() or []
        latest = [profile for profile in results if profile]
        return latest[-1:]

    async def _load_devicestatus(self, last_updated: int) -> list[dict[str, Any]]:
        query = devicestatus_query(last_updated, advanced=self._settings.devicestatus_advanced)
        results = await self._ctx.devicestatus.list(query)
        return normalize_device_statuses(results or [])
