"""Reading classification — splits raw entries into MBG, SGV and calibration kinds.

Each raw entry is offered to an ordered table of decoders. The first decoder
whose predicate accepts the entry builds the typed reading; entries no
decoder accepts are dropped. Each kind is then deduplicated by ``mills``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Callable, Iterable

from cgmview.core.dedup import unique_by

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MBG:
    """Meter (fingerstick) blood glucose."""

    mgdl: float
    mills: int
    device: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SGV:
    """Sensor glucose value."""

    mgdl: float
    mills: int
    device: str | None = None
    direction: str | None = None
    filtered: float | None = None
    unfiltered: float | None = None
    noise: int | None = None
    rssi: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Calibration:
    mills: int
    scale: float | None = None
    intercept: float | None = None
    slope: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ClassifiedReadings:
    mbgs: list[MBG]
    sgvs: list[SGV]
    cals: list[Calibration]


def as_number(value: Any) -> float | int | None:
    """Coerce a glucose value to a number; None if it is not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = value
    else:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
    if isinstance(number, float):
        if math.isnan(number) or math.isinf(number):
            return None
        if number.is_integer():
            return int(number)
    return number


def _is_mbg(entry: dict[str, Any]) -> bool:
    return bool(entry.get("mbg"))


def _is_sgv(entry: dict[str, Any]) -> bool:
    return bool(entry.get("sgv"))


def _is_cal(entry: dict[str, Any]) -> bool:
    return entry.get("type") == "cal"


def _entry_mills(entry: dict[str, Any]) -> int | None:
    date = entry.get("date")
    if isinstance(date, bool) or not isinstance(date, (int, float)):
        return None
    if isinstance(date, float) and not math.isfinite(date):
        return None
    return int(date)


def _make_mbg(entry: dict[str, Any]) -> MBG | None:
    mgdl = as_number(entry["mbg"])
    mills = _entry_mills(entry)
    if mgdl is None or mills is None:
        return None
    return MBG(mgdl=mgdl, mills=mills, device=entry.get("device"))


def _make_sgv(entry: dict[str, Any]) -> SGV | None:
    mgdl = as_number(entry["sgv"])
    mills = _entry_mills(entry)
    if mgdl is None or mills is None:
        return None
    return SGV(
        mgdl=mgdl,
        mills=mills,
        device=entry.get("device"),
        direction=entry.get("direction"),
        filtered=entry.get("filtered"),
        unfiltered=entry.get("unfiltered"),
        noise=entry.get("noise"),
        rssi=entry.get("rssi"),
    )


def _make_cal(entry: dict[str, Any]) -> Calibration | None:
    mills = _entry_mills(entry)
    if mills is None:
        return None
    return Calibration(
        mills=mills,
        scale=entry.get("scale"),
        intercept=entry.get("intercept"),
        slope=entry.get("slope"),
    )


# Priority order matters: an entry carrying both mbg and sgv is an MBG.
DECODERS: list[tuple[Callable[[dict[str, Any]], bool], Callable[[dict[str, Any]], Any]]] = [
    (_is_mbg, _make_mbg),
    (_is_sgv, _make_sgv),
    (_is_cal, _make_cal),
]


def decode_entry(entry: Any) -> MBG | SGV | Calibration | None:
    """Decode one raw entry as the first kind that decodes successfully.

    A decoder whose predicate matches but whose value is unusable (e.g. a
    non-numeric glucose or a missing ``date``) yields to the next one. Returns None when nothing
    decodes.
    """
    if not isinstance(entry, dict):
        return None
    for accepts, build in DECODERS:
        if accepts(entry):
            reading = build(entry)
            if reading is not None:
                return reading
    return None


def classify_entries(entries: Iterable[Any]) -> ClassifiedReadings:
    """Classify raw entries and deduplicate each kind by ``mills``.

    First occurrence wins; relative input order is preserved.
    """
    mbgs: list[MBG] = []
    sgvs: list[SGV] = []
    cals: list[Calibration] = []
    buckets = {MBG: mbgs, SGV: sgvs, Calibration: cals}

    dropped = 0
    for entry in entries:
        reading = decode_entry(entry)
        if reading is None:
            dropped += 1
            continue
        buckets[type(reading)].append(reading)

    if dropped:
        logger.debug("Dropped %d entries matching no reading kind", dropped)

    return ClassifiedReadings(
        mbgs=unique_by(mbgs, _mills),
        sgvs=unique_by(sgvs, _mills),
        cals=unique_by(cals, _mills),
    )


def _mills(reading: MBG | SGV | Calibration) -> int:
    return reading.mills
