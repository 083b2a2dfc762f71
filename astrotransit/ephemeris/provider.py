"""Body position providers and the observer location model."""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, Protocol

from ..errors import InvalidInputError
from ..observability import ProviderMetricRecorder
from .results import ProviderResult
from .swe import swe

if TYPE_CHECKING:  # pragma: no cover
    from ..config.settings import EphemerisCfg

__all__ = [
    "BODY_ALIASES",
    "BodyPosition",
    "GeoPosition",
    "PositionProvider",
    "SwissPositionProvider",
    "canonical_body",
    "require_finite_jd",
]

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeoPosition:
    """Observer geolocation in degrees and metres above sea level."""

    latitude: float
    longitude: float
    altitude_m: float = 0.0

    def __post_init__(self) -> None:
        for name in ("latitude", "longitude", "altitude_m"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidInputError(f"{name} must be numeric, got {value!r}", field=name)
            if not math.isfinite(value):
                raise InvalidInputError(f"{name} must be finite", field=name)
        if not -90.0 <= self.latitude <= 90.0:
            raise InvalidInputError("latitude must lie within [-90, 90]", field="latitude")
        if not -180.0 <= self.longitude < 360.0:
            raise InvalidInputError("longitude must lie within [-180, 360)", field="longitude")

    def as_swe(self) -> tuple[float, float, float]:
        """Return ``(lng, lat, alt)`` as expected by ``swe.azalt``."""

        return (float(self.longitude), float(self.latitude), float(self.altitude_m))


@dataclass(frozen=True)
class BodyPosition:
    """Ecliptic and equatorial coordinates of a body at one instant."""

    longitude: float
    latitude: float
    declination: float
    right_ascension: float
    speed: float = 0.0
    latitude_speed: float = 0.0


def require_finite_jd(jd: object, *, field: str = "jd") -> float:
    """Return ``jd`` as ``float`` or raise :class:`InvalidInputError`."""

    if isinstance(jd, bool) or not isinstance(jd, (int, float)):
        raise InvalidInputError(f"{field} must be a number, got {jd!r}", field=field)
    value = float(jd)
    if not math.isfinite(value):
        raise InvalidInputError(f"{field} must be finite", field=field)
    return value


class PositionProvider(Protocol):
    """Contract for anything able to locate bodies at a Julian day (UT)."""

    provider_id: str

    def position(
        self, jd: float, body: str, flags: int | None = None
    ) -> ProviderResult[BodyPosition]:
        ...

    def ascendant(self, jd: float, geo: GeoPosition) -> ProviderResult[BodyPosition]:
        ...

    def obliquity(self, jd: float) -> ProviderResult[float]:
        ...


# Short keys follow the two-letter graha convention used by chart payloads.
BODY_ALIASES: Final[dict[str, str]] = {
    "su": "sun",
    "mo": "moon",
    "ma": "mars",
    "me": "mercury",
    "ju": "jupiter",
    "ve": "venus",
    "sa": "saturn",
    "ur": "uranus",
    "ne": "neptune",
    "pl": "pluto",
    "ra": "mean_node",
    "rahu": "mean_node",
    "ke": "south_node",
    "ketu": "south_node",
    "node": "mean_node",
    "north_node": "mean_node",
}

_SWE_ATTRS: Final[dict[str, str]] = {
    "sun": "SUN",
    "moon": "MOON",
    "mercury": "MERCURY",
    "venus": "VENUS",
    "mars": "MARS",
    "jupiter": "JUPITER",
    "saturn": "SATURN",
    "uranus": "URANUS",
    "neptune": "NEPTUNE",
    "pluto": "PLUTO",
    "mean_node": "MEAN_NODE",
    "true_node": "TRUE_NODE",
    "south_node": "MEAN_NODE",
}


def canonical_body(body: str) -> str:
    """Return the canonical lower-case body name for ``body``."""

    if not isinstance(body, str) or not body.strip():
        raise InvalidInputError(f"unknown body {body!r}", field="body")
    key = body.strip().lower().replace(" ", "_")
    key = BODY_ALIASES.get(key, key)
    if key not in _SWE_ATTRS:
        raise InvalidInputError(f"unknown body {body!r}", field="body")
    return key


class SwissPositionProvider:
    """Swiss Ephemeris backed :class:`PositionProvider`."""

    provider_id = "swisseph"

    # Whole Sign keeps ascendant lookups valid at polar latitudes.
    _HOUSE_SYSTEM: Final[bytes] = b"W"

    def __init__(self, config: "EphemerisCfg | None" = None) -> None:
        path = getattr(config, "ephemeris_path", None) or os.getenv("SE_EPHE_PATH")
        self._prefer_moshier = bool(getattr(config, "prefer_moshier", False))
        if path and os.path.isdir(path):
            swe.set_ephe_path(path)
        elif not self._prefer_moshier:
            LOG.info(
                "no Swiss ephemeris path configured; falling back to Moshier",
                extra={"err_code": "EPHE_PATH_MISSING"},
            )
            self._prefer_moshier = True
        self._metrics = ProviderMetricRecorder(self.provider_id)

    def _flags(self, extra: int | None) -> int:
        backend = swe.FLG_MOSEPH if self._prefer_moshier else swe.FLG_SWIEPH
        flags = backend | swe.FLG_SPEED
        if extra:
            flags |= extra
        return flags

    def _fail(self, call: str, jd: float, exc: Exception) -> ProviderResult:
        self._metrics.record_failure(type(exc).__name__)
        LOG.warning(
            "swisseph %s failed at jd=%s: %s",
            call,
            jd,
            exc,
            extra={"err_code": "SWISSEPH_CALL"},
        )
        return ProviderResult.failure(
            self.provider_id, call, str(exc), jd=jd, error_code=type(exc).__name__
        )

    def position(
        self, jd: float, body: str, flags: int | None = None
    ) -> ProviderResult[BodyPosition]:
        name = canonical_body(body)
        code = int(getattr(swe, _SWE_ATTRS[name]))
        self._metrics.record_query("position")
        try:
            ecl, _ = swe.calc_ut(jd, code, self._flags(flags))
            equ, _ = swe.calc_ut(jd, code, self._flags(flags) | swe.FLG_EQUATORIAL)
        except swe.Error as exc:
            return self._fail("position", jd, exc)
        lon, lat, _dist, lon_speed, lat_speed, _dist_speed = ecl
        ra, dec = equ[0], equ[1]
        if name == "south_node":
            lon = lon + 180.0
            lat = -lat
            lat_speed = -lat_speed
            ra = ra + 180.0
            dec = -dec
        return ProviderResult.success(
            BodyPosition(
                longitude=float(lon) % 360.0,
                latitude=float(lat),
                declination=float(dec),
                right_ascension=float(ra) % 360.0,
                speed=float(lon_speed),
                latitude_speed=float(lat_speed),
            )
        )

    def obliquity(self, jd: float) -> ProviderResult[float]:
        self._metrics.record_query("obliquity")
        try:
            values, _ = swe.calc_ut(jd, swe.ECL_NUT, self._flags(None))
        except swe.Error as exc:
            return self._fail("obliquity", jd, exc)
        return ProviderResult.success(float(values[0]))

    def ascendant(self, jd: float, geo: GeoPosition) -> ProviderResult[BodyPosition]:
        eps = self.obliquity(jd)
        if not eps.ok:
            return ProviderResult(error=eps.error)
        self._metrics.record_query("ascendant")
        try:
            _cusps, angles = swe.houses_ex(
                jd, geo.latitude, geo.longitude, self._HOUSE_SYSTEM
            )
            asc = float(angles[0]) % 360.0
            ra, dec, _dist = swe.cotrans((asc, 0.0, 1.0), -eps.unwrap())
        except swe.Error as exc:
            return self._fail("ascendant", jd, exc)
        return ProviderResult.success(
            BodyPosition(
                longitude=asc,
                latitude=0.0,
                declination=float(dec),
                right_ascension=float(ra) % 360.0,
            )
        )
