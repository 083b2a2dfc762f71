"""Value types shared by the sampling, tracking and refinement stages."""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Any, Final, Union

from ..ephemeris.horizon import CoordinateFrame
from ..errors import InvalidInputError

__all__ = [
    "ALL_KINDS",
    "MINUTES_PER_DAY",
    "CrossingEvent",
    "CulminationEvent",
    "DerivedPointKey",
    "DerivedPointRequest",
    "EventKind",
    "FixedFrame",
    "LiveFrame",
    "ReferenceFrame",
    "ReferencePoint",
    "SearchFailure",
    "TimeSample",
    "TransitEvent",
    "TransitEventSet",
    "parse_kinds",
    "wrap360",
]

MINUTES_PER_DAY: Final[float] = 1440.0


def wrap360(value: float) -> float:
    wrapped = value % 360.0
    # -1e-20 % 360.0 rounds to 360.0
    return 0.0 if wrapped >= 360.0 else wrapped


class EventKind(str, enum.Enum):
    RISE = "rise"
    SET = "set"
    MC = "mc"
    IC = "ic"

    @property
    def is_crossing(self) -> bool:
        return self in (EventKind.RISE, EventKind.SET)


ALL_KINDS: Final[frozenset[EventKind]] = frozenset(EventKind)

_KIND_ALIASES: Final[dict[str, EventKind]] = {
    "rise": EventKind.RISE,
    "as": EventKind.RISE,
    "set": EventKind.SET,
    "ds": EventKind.SET,
    "mc": EventKind.MC,
    "highest": EventKind.MC,
    "ic": EventKind.IC,
    "lowest": EventKind.IC,
}


def parse_kinds(kinds: Iterable[str | EventKind] | None) -> frozenset[EventKind]:
    """Normalise a kind filter; ``None`` or an empty filter selects every kind."""

    if kinds is None:
        return ALL_KINDS
    if isinstance(kinds, (str, EventKind)):
        kinds = [kinds]
    parsed: set[EventKind] = set()
    for kind in kinds:
        if isinstance(kind, EventKind):
            parsed.add(kind)
            continue
        try:
            parsed.add(_KIND_ALIASES[str(kind).strip().lower()])
        except KeyError:
            raise InvalidInputError(f"unknown event kind {kind!r}", field="kinds") from None
    return frozenset(parsed) or ALL_KINDS


@dataclass(frozen=True)
class TimeSample:
    """Altitude of a target at one instant of a sampling pass.

    ``latitude`` is ecliptic latitude for ecliptic targets and declination
    for equatorial ones. ``projection_lng`` holds the right ascension handed
    to the projector when it differs from the reported ``longitude``.
    """

    jd: float
    minute_offset: float
    altitude: float
    longitude: float
    latitude: float = 0.0
    frame: CoordinateFrame = CoordinateFrame.ECLIPTIC
    projection_lng: float | None = None

    @property
    def target(self) -> tuple[float, float]:
        lng = self.longitude if self.projection_lng is None else self.projection_lng
        return lng, self.latitude

    def moved(self, jd: float, minute_offset: float, altitude: float) -> "TimeSample":
        return replace(self, jd=jd, minute_offset=minute_offset, altitude=altitude)


@dataclass(frozen=True)
class CrossingEvent:
    """Rise or set located by linear interpolation across the horizon."""

    kind: EventKind
    jd: float
    longitude: float
    after_reference: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "jd": self.jd,
            "lng": self.longitude,
            "after": self.after_reference,
        }


@dataclass(frozen=True)
class CulminationEvent:
    """MC or IC located by a grid search around the coarse extremum."""

    kind: EventKind
    jd: float
    longitude: float
    altitude: float
    after_reference: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "jd": self.jd,
            "lng": self.longitude,
            "alt": self.altitude,
            "after": self.after_reference,
        }


TransitEvent = Union[CrossingEvent, CulminationEvent]


@dataclass(frozen=True)
class TransitEventSet:
    """Rise, set, MC and IC for one point key; ``None`` marks an absent event.

    ``gaps`` counts samples skipped after provider failures. A non-zero value
    flags the set as a partial result.
    """

    key: str
    rise: CrossingEvent | None = None
    set: CrossingEvent | None = None
    mc: CulminationEvent | None = None
    ic: CulminationEvent | None = None
    gaps: int = 0

    @property
    def partial(self) -> bool:
        return self.gaps > 0

    @property
    def is_complete(self) -> bool:
        return None not in (self.rise, self.set, self.mc, self.ic)

    def get(self, kind: EventKind | str) -> TransitEvent | None:
        kind = EventKind(kind)
        return getattr(self, kind.value)

    def events(self) -> list[TransitEvent]:
        found = [e for e in (self.rise, self.set, self.mc, self.ic) if e is not None]
        return sorted(found, key=lambda event: event.jd)

    def with_key(self, key: str) -> "TransitEventSet":
        return replace(self, key=key)

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"key": self.key, "gaps": self.gaps}
        for kind in EventKind:
            event = self.get(kind)
            payload[kind.value] = event.as_dict() if event is not None else None
        return payload


class DerivedPointKey(str, enum.Enum):
    LOT_OF_FORTUNE = "lotOfFortune"
    LOT_OF_SPIRIT = "lotOfSpirit"
    BRGHU_BINDU = "brghuBindu"
    YOGI = "yogi"
    AVA_YOGI = "avaYogi"

    @classmethod
    def parse(cls, value: "DerivedPointKey | str") -> "DerivedPointKey":
        if isinstance(value, cls):
            return value
        lookup = str(value).strip().replace("_", "").replace(" ", "").lower()
        lookup = {"brighubindu": "brghubindu", "fortune": "lotoffortune", "spirit": "lotofspirit"}.get(
            lookup, lookup
        )
        for member in cls:
            if member.value.lower() == lookup:
                return member
        raise InvalidInputError(f"unknown sensitive point {value!r}", field="key")


@dataclass(frozen=True)
class ReferencePoint:
    """Longitude and right ascension of a body feeding a derived point."""

    longitude: float
    right_ascension: float
    latitude: float = 0.0
    declination: float = 0.0


@dataclass(frozen=True)
class LiveFrame:
    """Use the ascendant of each sample instant."""


@dataclass(frozen=True)
class FixedFrame:
    """Hold the ascendant at its birth-chart value for every sample."""

    birth_ascendant: ReferencePoint


ReferenceFrame = Union[LiveFrame, FixedFrame]


@dataclass(frozen=True)
class DerivedPointRequest:
    key: DerivedPointKey
    frame: ReferenceFrame = field(default_factory=LiveFrame)
    day_birth: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "key", DerivedPointKey.parse(self.key))
        if not isinstance(self.frame, (LiveFrame, FixedFrame)):
            raise InvalidInputError("frame must be LiveFrame or FixedFrame", field="frame")

    @property
    def transposed(self) -> bool:
        return isinstance(self.frame, FixedFrame)


@dataclass(frozen=True)
class SearchFailure:
    """Outcome recorded for a point key whose search could not complete."""

    key: str
    reason: str
    message: str = ""
