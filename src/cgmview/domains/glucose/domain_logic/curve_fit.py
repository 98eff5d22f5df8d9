"""Fit treatments onto the glucose curve so they can be drawn at a BG height.

A treatment that records its own glucose uses it (converted to mg/dL when it
is in mmol/L). Otherwise the nearest sensor reading within ten minutes
supplies the height. Treatments with neither keep no ``mgdl``.
"""

from __future__ import annotations

import bisect
import logging
from typing import Any

from cgmview.core.config.settings import Settings
from cgmview.core.times import ONE_MINUTE
from cgmview.domains.glucose.domain_logic.readings import SGV, as_number
from cgmview.domains.glucose.snapshot import Snapshot

logger = logging.getLogger(__name__)

MMOL_TO_MGDL = 18
MAX_SGV_DISTANCE = 10 * ONE_MINUTE


def _is_mmol(units: Any) -> bool:
    return isinstance(units, str) and units.lower().startswith("mmol")


def _nearest_sgv(sgvs: list[SGV], times: list[int], mills: int) -> SGV | None:
    idx = bisect.bisect_left(times, mills)
    candidates = [i for i in (idx - 1, idx) if 0 <= i < len(sgvs)]
    if not candidates:
        return None
    best = min(candidates, key=lambda i: abs(times[i] - mills))
    if abs(times[best] - mills) > MAX_SGV_DISTANCE:
        return None
    return sgvs[best]


def fit_treatments_to_bg_curve(snapshot: Snapshot, settings: Settings) -> None:
    """Attach an ``mgdl`` height to each treatment in ``snapshot.treatments``.

    Treatment dicts are replaced by updated copies; the list order is kept.
    """
    sgvs = sorted(
        (s for s in snapshot.sgvs if isinstance(s.mills, int)),
        key=lambda s: s.mills,
    )
    times = [s.mills for s in sgvs]

    fitted: list[dict[str, Any]] = []
    from_sgv = 0
    for treatment in snapshot.treatments:
        glucose = as_number(treatment.get("glucose"))
        if glucose is not None:
            units = treatment.get("units") or settings.display_units
            mgdl = glucose * MMOL_TO_MGDL if _is_mmol(units) else glucose
            fitted.append({**treatment, "mgdl": mgdl})
            continue

        nearest = _nearest_sgv(sgvs, times, treatment["mills"])
        if nearest is not None:
            fitted.append({**treatment, "mgdl": nearest.mgdl})
            from_sgv += 1
        else:
            fitted.append(treatment)

    snapshot.treatments = fitted
    logger.debug("Fitted %d treatments from sensor readings", from_sgv)
