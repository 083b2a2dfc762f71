"""Turn tracker brackets and coarse extrema into precise events."""

from __future__ import annotations

import logging
from typing import Callable

from ..ephemeris.horizon import HorizonProjector
from ..ephemeris.provider import GeoPosition
from ..ephemeris.results import ProviderResult
from .models import (
    MINUTES_PER_DAY,
    CrossingEvent,
    CulminationEvent,
    EventKind,
    TimeSample,
    wrap360,
)
from .tracker import Bracket, Extremum

__all__ = [
    "interpolate_crossing",
    "narrow_point_extremum",
    "refine_extremum",
    "shortest_arc",
]

LOG = logging.getLogger(__name__)

SampleAt = Callable[[float, float], ProviderResult[TimeSample]]
Checkpoint = Callable[[], None]

# float noise when a grid instant lands on the first or last sample
_EDGE_SLACK_DAYS = 1e-8


def shortest_arc(start: float, end: float) -> float:
    """Signed difference ``end - start`` folded into ``[-180, 180)``."""

    return (end - start + 540.0) % 360.0 - 180.0


def _within(jd: float, bounds: tuple[float, float] | None) -> bool:
    if bounds is None:
        return True
    return bounds[0] - _EDGE_SLACK_DAYS <= jd <= bounds[1] + _EDGE_SLACK_DAYS


def _beats(kind: EventKind, altitude: float, best: float) -> bool:
    return altitude > best if kind is EventKind.MC else altitude < best


def interpolate_crossing(bracket: Bracket, kind: EventKind) -> CrossingEvent:
    """Locate the zero crossing between the two samples of ``bracket``.

    The crossing lies ``progress`` of the way back from the later sample,
    ``progress = |alt_after / (alt_after - alt_before)|``.
    """

    before, after = bracket.before, bracket.after
    progress = abs(after.altitude / (after.altitude - before.altitude))
    jd = after.jd - progress * (after.jd - before.jd)
    longitude = wrap360(after.longitude + progress * shortest_arc(after.longitude, before.longitude))
    return CrossingEvent(kind=kind, jd=jd, longitude=longitude)


def refine_extremum(
    extremum: Extremum,
    kind: EventKind,
    geo: GeoPosition,
    projector: HorizonProjector,
    *,
    multiplier_minutes: float,
    resolution_minutes: float = 0.25,
    bounds: tuple[float, float] | None = None,
    checkpoint: Checkpoint | None = None,
) -> CulminationEvent:
    """Grid search ``±multiplier_minutes`` around a coarse MC or IC.

    The target coordinates stay fixed at those of the candidate sample. A
    sub-sample replaces the candidate only when strictly higher (MC) or
    lower (IC); sub-samples the projector cannot evaluate are skipped.
    Instants outside ``bounds`` (first and last sampled jd) are never
    evaluated, so a candidate on the window edge stays inside the window.
    ``checkpoint`` runs before every projector call.
    """

    best = extremum.sample
    count = max(1, int(round(2.0 * multiplier_minutes / resolution_minutes)))
    step_days = 2.0 * multiplier_minutes / count / MINUTES_PER_DAY
    first_jd = best.jd - multiplier_minutes / MINUTES_PER_DAY
    target_lng, target_lat = best.target
    skipped = 0
    for index in range(count + 1):
        jd = first_jd + index * step_days
        if not _within(jd, bounds):
            continue
        if checkpoint is not None:
            checkpoint()
        result = projector.horizontal(jd, geo, target_lng, target_lat, best.frame)
        if not result.ok:
            skipped += 1
            continue
        altitude = result.unwrap().true_altitude
        if _beats(kind, altitude, best.altitude):
            offset = best.minute_offset + (jd - best.jd) * MINUTES_PER_DAY
            best = best.moved(jd, offset, altitude)
    if skipped:
        LOG.debug("%d of %d %s refinement samples skipped", skipped, count + 1, kind.value)
    return CulminationEvent(
        kind=kind, jd=best.jd, longitude=best.longitude, altitude=best.altitude
    )


def narrow_point_extremum(
    extremum: Extremum,
    kind: EventKind,
    sample_at: SampleAt,
    samples: int = 48,
    bounds: tuple[float, float] | None = None,
    checkpoint: Checkpoint | None = None,
) -> Extremum:
    """Resample a derived point between its predecessor and beyond the candidate.

    ``2 * samples + 1`` instants are evaluated, stepping
    ``(candidate - predecessor) / samples`` from the predecessor, so the
    candidate sits in the middle. The first maximum (MC) or minimum (IC)
    wins. Instants outside ``bounds`` are skipped. Without a predecessor, or
    when every instant fails, the candidate is returned unchanged.
    """

    predecessor = extremum.predecessor
    if predecessor is None:
        return extremum
    step_days = (extremum.sample.jd - predecessor.jd) / samples
    best: TimeSample | None = None
    for index in range(2 * samples + 1):
        jd = predecessor.jd + index * step_days
        offset = predecessor.minute_offset + index * step_days * MINUTES_PER_DAY
        if not _within(jd, bounds):
            continue
        if checkpoint is not None:
            checkpoint()
        result = sample_at(jd, offset)
        if not result.ok:
            continue
        sample = result.unwrap()
        if best is None or _beats(kind, sample.altitude, best.altitude):
            best = sample
    if best is None:
        return extremum
    return Extremum(sample=best, predecessor=predecessor)
