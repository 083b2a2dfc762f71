"""Horizontal (altitude/azimuth) projection of ecliptic or equatorial targets."""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from ..observability import ProviderMetricRecorder
from .provider import GeoPosition
from .results import ProviderResult
from .swe import swe

if TYPE_CHECKING:  # pragma: no cover
    from ..config.settings import HorizonCfg

__all__ = [
    "CoordinateFrame",
    "HorizonProjector",
    "HorizontalPosition",
    "SphericalHorizonProjector",
    "SwissHorizonProjector",
    "equatorial_from_ecliptic",
    "local_sidereal_deg",
    "mean_obliquity_deg",
]

LOG = logging.getLogger(__name__)


class CoordinateFrame(str, enum.Enum):
    """Reference frame of the target coordinates handed to a projector."""

    ECLIPTIC = "ecliptic"
    EQUATORIAL = "equatorial"


@dataclass(frozen=True)
class HorizontalPosition:
    """Alt/Az coordinates measured from the local horizon."""

    true_altitude: float
    apparent_altitude: float
    azimuth: float


class HorizonProjector(Protocol):
    """Contract converting target coordinates to horizontal coordinates."""

    provider_id: str

    def horizontal(
        self,
        jd: float,
        geo: GeoPosition,
        target_lng: float,
        target_lat: float,
        frame: CoordinateFrame = CoordinateFrame.ECLIPTIC,
    ) -> ProviderResult[HorizontalPosition]:
        ...


class SwissHorizonProjector:
    """Projector delegating to ``swe.azalt``.

    With ``HorizonCfg.refraction`` off the apparent altitude reported equals
    the true altitude.
    """

    provider_id = "swisseph"

    def __init__(self, config: "HorizonCfg | None" = None) -> None:
        self._pressure = float(getattr(config, "pressure_hpa", 1010.0))
        self._temperature = float(getattr(config, "temperature_c", 10.0))
        self._refraction = bool(getattr(config, "refraction", True))
        self._metrics = ProviderMetricRecorder(self.provider_id)

    def horizontal(
        self,
        jd: float,
        geo: GeoPosition,
        target_lng: float,
        target_lat: float,
        frame: CoordinateFrame = CoordinateFrame.ECLIPTIC,
    ) -> ProviderResult[HorizontalPosition]:
        flag = swe.EQU2HOR if frame is CoordinateFrame.EQUATORIAL else swe.ECL2HOR
        self._metrics.record_query("azalt")
        try:
            azimuth, true_alt, apparent_alt = swe.azalt(
                jd,
                flag,
                geo.as_swe(),
                self._pressure,
                self._temperature,
                (float(target_lng), float(target_lat), 1.0),
            )
        except swe.Error as exc:
            self._metrics.record_failure(type(exc).__name__)
            LOG.warning(
                "swisseph azalt failed at jd=%s: %s",
                jd,
                exc,
                extra={"err_code": "SWISSEPH_AZALT"},
            )
            return ProviderResult.failure(
                self.provider_id, "azalt", str(exc), jd=jd, error_code=type(exc).__name__
            )
        return ProviderResult.success(
            HorizontalPosition(
                true_altitude=float(true_alt),
                apparent_altitude=float(apparent_alt if self._refraction else true_alt),
                azimuth=float(azimuth),
            )
        )


def mean_obliquity_deg(jd: float) -> float:
    """Mean obliquity of the ecliptic (IAU 2006, degrees)."""

    t = (jd - 2451545.0) / 36525.0
    arcsec = 21.448 - 46.8150 * t - 0.00059 * t * t + 0.001813 * t**3
    return 23.0 + 26.0 / 60.0 + arcsec / 3600.0


def local_sidereal_deg(jd: float, lon_deg: float) -> float:
    t = (jd - 2451545.0) / 36525.0
    gmst = (
        280.46061837
        + 360.98564736629 * (jd - 2451545.0)
        + 0.000387933 * t * t
        - (t**3) / 38710000.0
    )
    return (gmst + lon_deg) % 360.0


def equatorial_from_ecliptic(
    lon_deg: float, lat_deg: float, epsilon_deg: float
) -> tuple[float, float]:
    """Return ``(ra, dec)`` in degrees for an ecliptic position."""

    lam = math.radians(lon_deg)
    beta = math.radians(lat_deg)
    eps = math.radians(epsilon_deg)
    sin_dec = math.sin(beta) * math.cos(eps) + math.cos(beta) * math.sin(eps) * math.sin(lam)
    dec = math.degrees(math.asin(max(-1.0, min(1.0, sin_dec))))
    y = math.sin(lam) * math.cos(eps) - math.tan(beta) * math.sin(eps)
    ra = math.degrees(math.atan2(y, math.cos(lam))) % 360.0
    return ra, dec


def _refraction_arcmin(altitude_deg: float, temperature_c: float, pressure_hpa: float) -> float:
    # Saemundsson, true -> apparent
    if altitude_deg < -1.0 or altitude_deg > 90.0:
        return 0.0
    denom = math.tan(math.radians(altitude_deg + 10.3 / (altitude_deg + 5.11)))
    if denom == 0:
        return 0.0
    return 1.02 / denom * (pressure_hpa / 1010.0) * (283.0 / (273.0 + temperature_c))


class SphericalHorizonProjector:
    """Closed-form geocentric projector that needs no ephemeris files.

    Uses GMST and the mean obliquity, so results agree with Swiss Ephemeris
    to a few arcminutes. Good enough for tests and for callers that only
    need minute-level event times.
    """

    provider_id = "spherical"

    def __init__(self, config: "HorizonCfg | None" = None) -> None:
        self._pressure = float(getattr(config, "pressure_hpa", 1010.0))
        self._temperature = float(getattr(config, "temperature_c", 10.0))
        self._refraction = bool(getattr(config, "refraction", True))

    def horizontal(
        self,
        jd: float,
        geo: GeoPosition,
        target_lng: float,
        target_lat: float,
        frame: CoordinateFrame = CoordinateFrame.ECLIPTIC,
    ) -> ProviderResult[HorizontalPosition]:
        if frame is CoordinateFrame.EQUATORIAL:
            ra_deg, dec_deg = float(target_lng), float(target_lat)
        else:
            ra_deg, dec_deg = equatorial_from_ecliptic(
                target_lng, target_lat, mean_obliquity_deg(jd)
            )
        phi = math.radians(geo.latitude)
        lst_deg = local_sidereal_deg(jd, geo.longitude)
        hour_angle = math.radians((lst_deg - ra_deg + 540.0) % 360.0 - 180.0)
        dec = math.radians(dec_deg)
        sin_alt = math.sin(dec) * math.sin(phi) + math.cos(dec) * math.cos(phi) * math.cos(
            hour_angle
        )
        alt = math.degrees(math.asin(max(-1.0, min(1.0, sin_alt))))
        # Azimuth measured from south, westward, matching swe.azalt.
        az = math.degrees(
            math.atan2(
                math.sin(hour_angle),
                math.cos(hour_angle) * math.sin(phi) - math.tan(dec) * math.cos(phi),
            )
        ) % 360.0
        apparent = alt
        if self._refraction:
            apparent += _refraction_arcmin(alt, self._temperature, self._pressure) / 60.0
        return ProviderResult.success(
            HorizontalPosition(true_altitude=alt, apparent_altitude=apparent, azimuth=az)
        )
