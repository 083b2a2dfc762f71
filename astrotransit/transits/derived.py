"""Resolution of sensitive points derived from the Sun, Moon, Rahu and Ascendant.

Each point is an algebraic combination of reference longitudes. The same
combination is applied to right ascensions so that the point can be
projected onto the horizon in the equatorial frame:

========================  ====================================
point                     formula (mod 360)
========================  ====================================
Lot of Fortune            ``asc + (moon - sun)``
Lot of Spirit             ``asc + (sun - moon)``
Brghu Bindu               ``(moon + rahu) / 2``
Yogi                      ``sun + moon + 93 1/3``
Ava Yogi                  ``yogi + 560/3``
========================  ====================================

For a night birth Fortune and Spirit exchange formulas. In a
:class:`~astrotransit.transits.models.FixedFrame` the ascendant term is the
birth value while the other references follow the sample instant.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Callable, Final

from ..ephemeris.horizon import CoordinateFrame, HorizonProjector
from ..ephemeris.provider import GeoPosition, PositionProvider
from ..ephemeris.results import ProviderResult
from .models import (
    DerivedPointKey,
    DerivedPointRequest,
    FixedFrame,
    LiveFrame,
    ReferenceFrame,
    ReferencePoint,
    wrap360,
)

__all__ = [
    "ASCENDANT",
    "DerivedPointResolver",
    "DerivedPosition",
    "ReferenceSet",
    "declination_from_ra",
    "point_value",
    "required_references",
    "sect_formula",
]

LOG = logging.getLogger(__name__)

ASCENDANT: Final[str] = "as"
SUN: Final[str] = "su"
MOON: Final[str] = "mo"
RAHU: Final[str] = "ra"

_BODY_NAMES: Final[dict[str, str]] = {SUN: "sun", MOON: "moon", RAHU: "mean_node"}

YOGI_OFFSET: Final[float] = 93.0 + 1.0 / 3.0
AVA_YOGI_OFFSET: Final[float] = 560.0 / 3.0


@dataclass(frozen=True)
class ReferenceSet:
    """Reference bodies sampled at one instant plus the obliquity."""

    points: Mapping[str, ReferencePoint]
    obliquity: float

    def __getitem__(self, key: str) -> ReferencePoint:
        return self.points[key]


@dataclass(frozen=True)
class DerivedPosition:
    key: DerivedPointKey
    longitude: float
    right_ascension: float
    declination: float
    altitude: float


def sect_formula(key: DerivedPointKey, day_birth: bool) -> DerivedPointKey:
    """Return the formula used for ``key`` given the sect of the birth."""

    if day_birth:
        return key
    if key is DerivedPointKey.LOT_OF_FORTUNE:
        return DerivedPointKey.LOT_OF_SPIRIT
    if key is DerivedPointKey.LOT_OF_SPIRIT:
        return DerivedPointKey.LOT_OF_FORTUNE
    return key


def required_references(key: DerivedPointKey, frame: ReferenceFrame) -> tuple[str, ...]:
    if key is DerivedPointKey.BRGHU_BINDU:
        return (SUN, MOON, RAHU)
    if key in (DerivedPointKey.YOGI, DerivedPointKey.AVA_YOGI):
        return (SUN, MOON)
    if isinstance(frame, FixedFrame):
        return (SUN, MOON)
    return (ASCENDANT, SUN, MOON)


def point_value(
    formula: DerivedPointKey,
    value: Callable[[str], float],
) -> float:
    """Evaluate ``formula`` over a scalar accessor (longitude or right ascension)."""

    if formula is DerivedPointKey.LOT_OF_FORTUNE:
        return wrap360(value(ASCENDANT) + (value(MOON) - value(SUN)))
    if formula is DerivedPointKey.LOT_OF_SPIRIT:
        return wrap360(value(ASCENDANT) + (value(SUN) - value(MOON)))
    if formula is DerivedPointKey.BRGHU_BINDU:
        return wrap360((value(MOON) + value(RAHU)) / 2.0)
    yogi = wrap360(value(SUN) + value(MOON) + YOGI_OFFSET)
    if formula is DerivedPointKey.YOGI:
        return yogi
    return wrap360(yogi + AVA_YOGI_OFFSET)


def declination_from_ra(right_ascension: float, obliquity: float) -> float:
    """Declination of an ecliptic-plane point whose angle is ``right_ascension``."""

    sin_d = math.sin(math.radians(right_ascension)) * math.sin(math.radians(obliquity))
    return math.degrees(math.asin(max(-1.0, min(1.0, sin_d))))


class DerivedPointResolver:
    """Locate sensitive points and project them onto the local horizon."""

    def __init__(self, positions: PositionProvider, projector: HorizonProjector) -> None:
        self.positions = positions
        self.projector = projector

    def fetch_references(
        self, jd: float, geo: GeoPosition, keys: Iterable[str]
    ) -> ProviderResult[ReferenceSet]:
        eps = self.positions.obliquity(jd)
        if not eps.ok:
            return ProviderResult(error=eps.error)
        points: dict[str, ReferencePoint] = {}
        for key in keys:
            if key == ASCENDANT:
                result = self.positions.ascendant(jd, geo)
            else:
                result = self.positions.position(jd, _BODY_NAMES[key])
            if not result.ok:
                return ProviderResult(error=result.error)
            pos = result.unwrap()
            points[key] = ReferencePoint(
                longitude=pos.longitude,
                right_ascension=pos.right_ascension,
                latitude=pos.latitude,
                declination=pos.declination,
            )
        return ProviderResult.success(ReferenceSet(points=points, obliquity=eps.unwrap()))

    @staticmethod
    def locate(
        request: DerivedPointRequest, refs: ReferenceSet
    ) -> tuple[float, float, float]:
        """Return ``(longitude, right_ascension, declination)`` for ``request``."""

        points = dict(refs.points)
        if isinstance(request.frame, FixedFrame):
            points[ASCENDANT] = request.frame.birth_ascendant
        formula = sect_formula(request.key, request.day_birth)
        longitude = point_value(formula, lambda k: points[k].longitude)
        right_ascension = point_value(formula, lambda k: points[k].right_ascension)
        return longitude, right_ascension, declination_from_ra(right_ascension, refs.obliquity)

    def resolve(
        self, request: DerivedPointRequest, jd: float, geo: GeoPosition
    ) -> ProviderResult[DerivedPosition]:
        refs = self.fetch_references(jd, geo, required_references(request.key, request.frame))
        if not refs.ok:
            return ProviderResult(error=refs.error)
        return self._project(request, jd, geo, refs.unwrap())

    def _project(
        self,
        request: DerivedPointRequest,
        jd: float,
        geo: GeoPosition,
        refs: ReferenceSet,
    ) -> ProviderResult[DerivedPosition]:
        longitude, ra, dec = self.locate(request, refs)
        horiz = self.projector.horizontal(jd, geo, ra, dec, CoordinateFrame.EQUATORIAL)
        if not horiz.ok:
            return ProviderResult(error=horiz.error)
        return ProviderResult.success(
            DerivedPosition(
                key=request.key,
                longitude=longitude,
                right_ascension=ra,
                declination=dec,
                altitude=horiz.unwrap().true_altitude,
            )
        )

    def snapshot(
        self,
        jd: float,
        geo: GeoPosition,
        frame: ReferenceFrame | None = None,
        day_birth: bool = True,
    ) -> ProviderResult[dict[DerivedPointKey, DerivedPosition]]:
        """Locate every sensitive point at ``jd`` from a single reference lookup."""

        frame = frame if frame is not None else LiveFrame()
        keys = (SUN, MOON, RAHU) if isinstance(frame, FixedFrame) else (ASCENDANT, SUN, MOON, RAHU)
        refs = self.fetch_references(jd, geo, keys)
        if not refs.ok:
            return ProviderResult(error=refs.error)
        out: dict[DerivedPointKey, DerivedPosition] = {}
        for key in DerivedPointKey:
            request = DerivedPointRequest(key=key, frame=frame, day_birth=day_birth)
            result = self._project(request, jd, geo, refs.unwrap())
            if not result.ok:
                return ProviderResult(error=result.error)
            out[key] = result.unwrap()
        return ProviderResult.success(out)

    def birth_frame(self, jd: float, geo: GeoPosition) -> ProviderResult[FixedFrame]:
        """Capture the birth ascendant at ``jd`` for transposed searches."""

        result = self.positions.ascendant(jd, geo)
        if not result.ok:
            return ProviderResult(error=result.error)
        asc = result.unwrap()
        return ProviderResult.success(
            FixedFrame(
                ReferencePoint(
                    longitude=asc.longitude,
                    right_ascension=asc.right_ascension,
                    declination=asc.declination,
                )
            )
        )
