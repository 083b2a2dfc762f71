"""Lazy altitude sampling across a day window."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Protocol

from ..ephemeris.horizon import CoordinateFrame, HorizonProjector
from ..ephemeris.provider import BodyPosition, GeoPosition, PositionProvider
from ..ephemeris.results import ProviderFailure, ProviderResult
from ..errors import InvalidInputError
from ..observability import SAMPLE_GAPS
from .derived import DerivedPointResolver
from .models import MINUTES_PER_DAY, DerivedPointRequest, TimeSample, wrap360

__all__ = [
    "BodySource",
    "PointSource",
    "SampleSeries",
    "SampleSource",
    "StepSize",
]

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepSize:
    """Spacing between consecutive samples, stored in days."""

    days: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.days) or self.days <= 0:
            raise InvalidInputError("step must be a positive duration", field="step")

    @classmethod
    def of_minutes(cls, minutes: float) -> "StepSize":
        return cls(float(minutes) / MINUTES_PER_DAY)

    @classmethod
    def of_fraction(cls, units_per_day: int) -> "StepSize":
        if units_per_day <= 0:
            raise InvalidInputError("units_per_day must be positive", field="step")
        return cls(1.0 / units_per_day)

    @property
    def minutes(self) -> float:
        return self.days * MINUTES_PER_DAY


class SampleSource(Protocol):
    label: str

    def sample(self, jd: float, minute_offset: float) -> ProviderResult[TimeSample]:
        ...


class BodySource:
    """Real body whose position is extrapolated from one starting sample.

    ``lng(t) = lng0 + speed * (t - t0)``; latitude moves only when a latitude
    speed is known. With ``resample_speed`` the provider is asked for the
    current speed at every step, which the Moon needs. With
    ``extrapolate=False`` every step queries the provider directly.
    """

    label = "body"

    def __init__(
        self,
        body: str,
        origin: BodyPosition,
        origin_jd: float,
        geo: GeoPosition,
        projector: HorizonProjector,
        *,
        positions: PositionProvider | None = None,
        extrapolate: bool = True,
        resample_speed: bool = False,
    ) -> None:
        if positions is None and (resample_speed or not extrapolate):
            raise InvalidInputError(
                "a position provider is required to resample the body", field="positions"
            )
        self.body = body
        self.origin = origin
        self.origin_jd = origin_jd
        self.geo = geo
        self.projector = projector
        self.positions = positions
        self.extrapolate = extrapolate
        self.resample_speed = resample_speed and origin.speed != 0

    def _coordinates(self, jd: float) -> ProviderResult[tuple[float, float]]:
        if not self.extrapolate:
            result = self.positions.position(jd, self.body)  # type: ignore[union-attr]
            if not result.ok:
                return ProviderResult(error=result.error)
            pos = result.unwrap()
            return ProviderResult.success((pos.longitude, pos.latitude))

        speed = self.origin.speed
        lat_speed = 0.0
        if self.resample_speed:
            result = self.positions.position(jd, self.body)  # type: ignore[union-attr]
            if not result.ok:
                return ProviderResult(error=result.error)
            speed = result.unwrap().speed
            lat_speed = result.unwrap().latitude_speed
        elapsed = jd - self.origin_jd
        lng = self.origin.longitude + speed * elapsed if speed != 0 else self.origin.longitude
        lat = self.origin.latitude + lat_speed * elapsed if lat_speed != 0 else self.origin.latitude
        return ProviderResult.success((wrap360(lng), lat))

    def sample(self, jd: float, minute_offset: float) -> ProviderResult[TimeSample]:
        coords = self._coordinates(jd)
        if not coords.ok:
            return ProviderResult(error=coords.error)
        lng, lat = coords.unwrap()
        horiz = self.projector.horizontal(jd, self.geo, lng, lat, CoordinateFrame.ECLIPTIC)
        if not horiz.ok:
            return ProviderResult(error=horiz.error)
        return ProviderResult.success(
            TimeSample(
                jd=jd,
                minute_offset=minute_offset,
                altitude=horiz.unwrap().true_altitude,
                longitude=lng,
                latitude=lat,
            )
        )


class PointSource:
    """Sensitive point recomputed from its reference bodies at every step."""

    label = "point"

    def __init__(
        self,
        resolver: DerivedPointResolver,
        request: DerivedPointRequest,
        geo: GeoPosition,
    ) -> None:
        self.resolver = resolver
        self.request = request
        self.geo = geo

    def sample(self, jd: float, minute_offset: float) -> ProviderResult[TimeSample]:
        result = self.resolver.resolve(self.request, jd, self.geo)
        if not result.ok:
            return ProviderResult(error=result.error)
        pos = result.unwrap()
        return ProviderResult.success(
            TimeSample(
                jd=jd,
                minute_offset=minute_offset,
                altitude=pos.altitude,
                longitude=pos.longitude,
                latitude=pos.declination,
                frame=CoordinateFrame.EQUATORIAL,
                projection_lng=pos.right_ascension,
            )
        )


class SampleSeries:
    """Single-use iterable of samples over ``[start, start + window]``.

    ``lead_steps`` prepends that many samples before ``start``. Samples whose
    provider call failed are skipped and counted in :attr:`gaps`. A
    ``checkpoint`` callable runs before each sample and may raise to abort
    the series.
    """

    def __init__(
        self,
        start_jd: float,
        window_days: float,
        step: StepSize,
        source: SampleSource,
        *,
        lead_steps: int = 0,
        checkpoint: Callable[[], None] | None = None,
    ) -> None:
        if not math.isfinite(window_days) or window_days <= 0:
            raise InvalidInputError("window must be a positive number of days", field="window")
        if lead_steps < 0:
            raise InvalidInputError("lead_steps cannot be negative", field="lead_steps")
        self.start_jd = start_jd
        self.window_days = window_days
        self.step = step
        self.source = source
        self.lead_steps = lead_steps
        self.checkpoint = checkpoint
        self.gaps = 0
        self.failures: list[ProviderFailure] = []
        self._consumed = False

    @property
    def step_count(self) -> int:
        return int(math.floor(self.window_days / self.step.days + 1e-9))

    @property
    def bounds(self) -> tuple[float, float]:
        """First and last jd the series samples, lead steps included."""

        return (
            self.start_jd - self.lead_steps * self.step.days,
            self.start_jd + self.step_count * self.step.days,
        )

    def __iter__(self) -> Iterator[TimeSample]:
        if self._consumed:
            raise RuntimeError("SampleSeries can only be iterated once")
        self._consumed = True
        return self._generate()

    def _generate(self) -> Iterator[TimeSample]:
        for index in range(-self.lead_steps, self.step_count + 1):
            offset_days = index * self.step.days
            jd = self.start_jd + offset_days
            if self.checkpoint is not None:
                self.checkpoint()
            result = self.source.sample(jd, offset_days * MINUTES_PER_DAY)
            if not result.ok:
                self.gaps += 1
                self.failures.append(result.error)  # type: ignore[arg-type]
                SAMPLE_GAPS.labels(source=self.source.label).inc()
                LOG.debug("skipping sample at jd=%s: %s", jd, result.error.describe())  # type: ignore[union-attr]
                continue
            yield result.unwrap()
